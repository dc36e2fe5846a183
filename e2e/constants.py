# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.

# Paths to the WASMs used for tests
TX_TRANSFER_WASM = "tx_transfer.wasm"
TX_IBC_WASM = "tx_ibc.wasm"
VP_USER_WASM = "vp_user.wasm"

# User addresses aliases
ALBERT = "Albert"
ALBERT_KEY = "Albert-key"
BERTHA = "Bertha"
BERTHA_KEY = "Bertha-key"
CHRISTEL = "Christel"
CHRISTEL_KEY = "Christel-key"
DAEWON = "Daewon"
DAEWON_KEY = "Daewon-key"
ESTER = "Ester"

# Native VP aliases
GOVERNANCE_ADDRESS = "governance"
MASP = "masp"

# Fungible token addresses
NAM = "NAM"
BTC = "BTC"
ETH = "ETH"
DOT = "DOT"
