"""Shared pytest fixtures for firmscope tests."""

import os
from contextlib import contextmanager
from unittest.mock import patch

import pytest

from elf_builder import build_sample_firmware
from firmscope.targets.database import TARGETS_PATH_ENV

CUSTOM_FAMILY_YAML = """\
name: Test Boards
variants:
- name: TESTCHIP
  memory_map:
  - !Nvm
    name: BOOT
    range:
      start: 0x0
      end: 0x8000
  - !Ram
    range:
      start: 0x20000000
      end: 0x20008000
  - !Generic
    name: Backup_RAM
    range:
      start: 0x40024000
      end: 0x40025000
- name: EMPTYCHIP
  memory_map: []
"""


@contextmanager
def targets_path_context(*directories):
    """
    Context manager that points FIRMSCOPE_TARGETS_PATH at extra target directories.

    Args:
        directories: Directories holding target family files

    Yields:
        The environment value that was set
    """
    value = os.pathsep.join(str(d) for d in directories)
    with patch.dict(os.environ, {TARGETS_PATH_ENV: value}):
        yield value


def write_family_file(directory, content=CUSTOM_FAMILY_YAML, filename='Test_Boards.yaml'):
    """Write a target family file and return its path."""
    path = directory / filename
    path.write_text(content, encoding='utf-8')
    return path


@pytest.fixture
def targets_dir(tmp_path):
    """Directory with one custom target family file."""
    directory = tmp_path / 'targets'
    directory.mkdir()
    write_family_file(directory)
    return directory


@pytest.fixture
def firmware_elf(tmp_path):
    """Sample firmware image with RTT, defmt and debug info written to disk."""
    path = tmp_path / 'firmware.elf'
    path.write_bytes(build_sample_firmware())
    return path


@pytest.fixture
def stripped_firmware_elf(tmp_path):
    """Sample firmware image without debug info."""
    path = tmp_path / 'firmware_stripped.elf'
    path.write_bytes(build_sample_firmware(with_dwarf=False))
    return path
