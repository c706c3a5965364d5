# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/__init__.py
"""
vmimport - VM import engine for a Kubernetes-style object store

Imports virtual machines from oVirt and VMware into KubeVirt-shaped
VirtualMachine and DataVolume objects, cold or warm (incremental).

Usage as a library:

    from vmimport import ControllerConfig, ImportController, FileObjectStore

    store = FileObjectStore(Path("./store"))
    controller = ImportController(store, ControllerConfig.load(["vmimport.yaml"]))
    controller.run()
"""

__version__ = "0.1.0"

from .controller import ControllerConfig, ImportController, ImportReconciler
from .store import FileObjectStore, InMemoryObjectStore

__all__ = [
    "__version__",
    "ControllerConfig",
    "ImportController",
    "ImportReconciler",
    "FileObjectStore",
    "InMemoryObjectStore",
]
