# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.

from setuptools import setup

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="namada-e2e",
    version="0.1.0",
    description="End-to-end test harness bootstrapping local multi-validator ledger networks",
    long_description=long_description,
    long_description_content_type="text/markdown",
    license="Apache License 2.0",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
    ],
    packages=["e2e"],
    python_requires=">=3.11",
    install_requires=[
        "loguru",
        "better_exceptions",
        "cryptography",
        "pexpect",
        "tomli-w",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": [
            "e2e_start_network = e2e.start_network:main",
        ]
    },
)
