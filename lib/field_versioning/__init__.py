# field_versioning/__init__.py
# Copyright (C) 2026 the field_versioning authors and contributors
#
# This module is part of field_versioning and is released under
# the MIT License: https://www.opensource.org/licenses/mit-license.php

from .behavior import FieldVersioning
from .behavior import PENDING_KEY
from .behavior import versioning_for
from .config import versioning_from_config
from .exc import CompositePrimaryKeyError
from .exc import ConfigurationError
from .exc import ContentEncodingError
from .exc import UnversionedClassError
from .exc import VersionConflictError
from .exc import VersioningError
from .reconstruct import group_snapshots
from .reconstruct import ReconstructedVersion
from .store import Snapshot
from .store import VersionStore
from .transaction import retry_on_conflict
from .types import decode_content
from .types import encode_content
from .types import TaggedContent

__version__ = "0.1.0"
