#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Cache snapshot storage module
Persists the response cache as a single JSON file of entry records
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Union

from ..utils.constants import ERROR_MESSAGES
from ..utils.errors import PersistenceWarning


class SnapshotStore:
    """
    JSON snapshot file

    The file holds a list of records
    {key, value, created_at, expires_at, size_hint, ...}.
    Writes go to a temporary file in the same directory and are moved into
    place, so readers never see a half-written snapshot.
    """

    def __init__(self, path: Union[str, Path]):
        """
        Initialize snapshot store

        Args:
            path: Snapshot file path
        """
        self.path = Path(path).expanduser()
        self.logger = logging.getLogger('tappmcp.snapshot')

    def exists(self) -> bool:
        """Whether a snapshot file is present"""
        return self.path.is_file()

    def load(self) -> List[Dict[str, Any]]:
        """
        Read all records

        Returns:
            Record list, empty when no snapshot exists

        Raises:
            PersistenceWarning: File unreadable, not JSON, or not a list
        """
        if not self.exists():
            return []

        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceWarning(
                ERROR_MESSAGES['snapshot_read_failed'].format(self.path, e)
            ) from e

        if not isinstance(data, list):
            raise PersistenceWarning(ERROR_MESSAGES['snapshot_malformed'].format(self.path))

        return data

    def save(self, records: List[Dict[str, Any]]):
        """
        Replace the snapshot with the given records

        Args:
            records: Entry records

        Raises:
            PersistenceWarning: Directory, encoding or write failure
        """
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(records, ensure_ascii=False, indent=2)

            fd, tmp_name = tempfile.mkstemp(
                prefix=f'.{self.path.name}.', suffix='.tmp', dir=str(self.path.parent)
            )
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
            tmp_name = None

            self.logger.debug(f"Snapshot saved: {self.path} ({len(records)} records)")

        except (OSError, TypeError, ValueError) as e:
            raise PersistenceWarning(
                ERROR_MESSAGES['snapshot_write_failed'].format(self.path, e)
            ) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

    def delete(self) -> bool:
        """
        Remove the snapshot file

        Returns:
            Whether a file was removed
        """
        if self.exists():
            self.path.unlink()
            return True
        return False
