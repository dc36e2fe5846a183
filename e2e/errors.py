# Copyright (c) Microsoft Corporation. All rights reserved.
# Licensed under the Apache 2.0 License.


class HarnessError(Exception):
    """
    Base class for every fatal harness failure. The command line, the
    caller's source location and the command's log file are attached
    when known so that a failure can be diagnosed from its message alone.
    """

    def __init__(self, msg, command=None, location=None, log_path=None, output=None):
        super().__init__(msg)
        self.msg = msg
        self.command = command
        self.location = location
        self.log_path = log_path
        self.output = output

    def __str__(self):
        lines = [self.msg]
        for label, value in (
            ("Command", self.command),
            ("Location", self.location),
            ("Logs", self.log_path),
        ):
            if value is not None:
                lines.append(f"{label}: {value}")
        if self.output:
            lines.append(f"Output:\n{self.output}")
        return "\n".join(lines)


class SpawnError(HarnessError):
    pass


class PatternTimeout(HarnessError):
    pass


class EmptyMatch(HarnessError):
    pass


class OutputClosed(HarnessError):
    pass


class StartupFailure(HarnessError):
    pass


class ExitStatusMismatch(HarnessError):
    pass


class TemplateError(HarnessError):
    pass


class ProvisioningError(HarnessError):
    pass


class UnexpectedOutput(HarnessError):
    pass
