"""
Parsers for shell environment exports, such as the init.sh of a Habitat rootfs.
"""
from pathlib import Path
from typing import Dict, Union


class EnvParser:
    """
    Parser for `KEY=VALUE` and `export KEY=VALUE` lines.
    """
    @staticmethod
    def parse(env_path: Union[str, Path]) -> Dict[str, str]:
        """
        Parses a file of environment assignments.

        Args:
            env_path (Union[str, Path]): Path to the file.

        Returns:
            Dict[str, str]: Dictionary of environment variables.
        """
        with open(env_path, 'r') as f:
            content = f.read()
        return EnvParser.parse_from_string(content)

    @staticmethod
    def parse_from_string(content: str) -> Dict[str, str]:
        """
        Parses environment assignments from a string.
        Handles an `export` prefix, quotes and comments; other shell lines are ignored.
        """
        env = {}
        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith('#'):
                continue

            if line.startswith('export '):
                line = line[len('export '):].strip()

            if '=' not in line:
                continue

            key, value = line.split('=', 1)
            key = key.strip()
            value = value.strip()

            # Shell statements like `if [ "$x" = y ]` are not assignments
            if not key or not key.replace('_', '').isalnum():
                continue

            if value.startswith('"') or value.startswith("'"):
                quote = value[0]
                end_quote_idx = value.find(quote, 1)
                if end_quote_idx != -1:
                    value = value[1:end_quote_idx]
            elif '#' in value:
                value = value.split('#')[0].strip()

            env[key] = value

        return env
