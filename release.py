"""
Keep the membersync version constants in step with pyproject.toml.

pyproject.toml is the single place the version is bumped. members/__init__.py
carries it as three integer constants (version_major, version_minor,
version_patch) so the package can report __version__ without reading package
metadata. Run this after every bump:

    python release.py          # rewrite the constants
    python release.py --check  # exit 1 if they drifted, write nothing
"""

import argparse
import re
import sys
from pathlib import Path
from typing import Optional
from typing import Sequence


ROOT = Path(__file__).parent
TOML_PATH = ROOT / "pyproject.toml"
MEMBERS_PATH = ROOT / "members" / "__init__.py"

VERSION = tuple[int, int, int]
_PARTS = ("major", "minor", "patch")


def parse_version(version_str: str) -> VERSION:
    """Split "1.2.3" (quoted or not) into (1, 2, 3)."""
    match = re.match(r"^(\d+)\.(\d+)\.(\d+)$", version_str.strip("\"'"))
    if not match:
        raise ValueError(f"Invalid version format: {version_str}")
    major, minor, patch = (int(group) for group in match.groups())
    return major, minor, patch


def get_version_from_toml(toml_path: Path = TOML_PATH) -> VERSION:
    """Read [project].version from pyproject.toml."""
    content = toml_path.read_text()
    match = re.search(r'^version\s*=\s*["\'](\d+\.\d+\.\d+)["\']', content, re.M)

    if not match:
        raise ValueError(f"No version field found in {toml_path.name}")

    return parse_version(match.group(1))


def read_package_version(package_init: Path = MEMBERS_PATH) -> VERSION:
    """Read the version constants currently written in members/__init__.py."""
    content = package_init.read_text(encoding="utf-8")
    found = []
    for part in _PARTS:
        match = re.search(rf"^version_{part}\s*=\s*(\d+)", content, re.M)
        if not match:
            raise ValueError(f"Pattern not found: version_{part}")
        found.append(int(match.group(1)))

    major, minor, patch = found
    return major, minor, patch


def update_python_version(
    new_version: VERSION, package_init: Path = MEMBERS_PATH
) -> None:
    """
    Rewrite version_major, version_minor and version_patch in place.

    Raises:
        ValueError: If one of the three constants is missing.
    """
    content = package_init.read_text(encoding="utf-8")

    for part, number in zip(_PARTS, new_version):
        pattern = rf"version_{part}\s*=\s*\d+"
        content, count = re.subn(pattern, f"version_{part} = {number}", content)
        if count == 0:
            raise ValueError(f"Pattern not found: {pattern}")

    package_init.write_text(content, encoding="utf-8")
    print(f"Updated {package_init}: {'.'.join(map(str, new_version))}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument(
        "--check",
        action="store_true",
        help="only report whether members/__init__.py matches pyproject.toml",
    )
    args = parser.parse_args(argv)

    wanted = get_version_from_toml()
    if args.check:
        current = read_package_version()
        if current != wanted:
            print(f"members is at {current}, pyproject.toml says {wanted}")
            return 1
        return 0

    update_python_version(wanted)
    return 0


if __name__ == "__main__":
    sys.exit(main())
