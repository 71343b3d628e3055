# Copyright 2025-present DatusAI, Inc.
# Licensed under the Apache License, Version 2.0.
# See http://www.apache.org/licenses/LICENSE-2.0 for details.

from .adapter_config import AdapterConfig, load_adapter_config

__all__ = ["AdapterConfig", "load_adapter_config"]
