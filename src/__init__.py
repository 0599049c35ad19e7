"""School portal backend.

Record-management backend for a school portal: school directory storage
plus bulk CSV student import with live progress streaming.

Copyright (C) 2025 Global Digital Labs (gdlabs.io)
SPDX-License-Identifier: LGPL-3.0-or-later
"""

__version__ = "1.0.0"
