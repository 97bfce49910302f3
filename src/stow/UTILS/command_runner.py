# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Blocking execution of external tools (hab, hab-studio, docker).
"""
import logging
import os
import subprocess
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """
    An external command exited non-zero or could not be started.
    Collaborator clients translate this into their own error types.
    """

    def __init__(self, command: List[str], returncode: Optional[int], output: str = ""):
        self.command = command
        self.returncode = returncode
        self.output = output
        detail = f"exit code {returncode}" if returncode is not None else "could not be started"
        super().__init__(f"Command '{' '.join(command)}' failed ({detail})")


def run_command(command: List[str],
                env: Optional[Dict[str, str]] = None,
                cwd: Optional[str] = None,
                capture: bool = True) -> str:
    """
    Runs a command to completion with no timeout.

    Args:
        command: Command and arguments, never passed through a shell.
        env: Extra environment variables layered over the current environment.
        cwd: Working directory for the command.
        capture: Return stdout instead of streaming it to the log.

    Returns:
        Captured stdout (empty when streaming).

    Raises:
        CommandError: If the command cannot be started or exits non-zero.
    """
    full_env = None
    if env:
        full_env = os.environ.copy()
        full_env.update(env)

    logger.debug("Running command: %s", " ".join(command))

    try:
        if capture:
            result = subprocess.run(
                command,
                env=full_env,
                cwd=cwd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                shell=False,
            )
            if result.returncode != 0:
                raise CommandError(command, result.returncode, result.stderr.strip())
            return result.stdout

        # Stream long running builds line by line so progress is visible
        with subprocess.Popen(
            command,
            env=full_env,
            cwd=cwd,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
            shell=False,
        ) as process:
            tail: List[str] = []
            try:
                for line in process.stdout:
                    line = line.rstrip()
                    if line:
                        logger.info("[%s] %s", os.path.basename(command[0]), line)
                        tail = (tail + [line])[-20:]
                returncode = process.wait()
            except BaseException:
                # Cancelled mid-stream: stop the child before unwinding
                process.terminate()
                process.wait()
                raise
        if returncode != 0:
            raise CommandError(command, returncode, "\n".join(tail))
        return ""
    except OSError as e:
        raise CommandError(command, None, str(e)) from e
