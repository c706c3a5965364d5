# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# vmimport/providers/ovirt/client.py
"""
oVirt REST API client (JSON flavour of /ovirt-engine/api).

Only what the importer needs: VM lookup with the linked devices followed
in one request, power actions, snapshots and disk status.
"""

from __future__ import annotations

import logging
import os
import tempfile
from typing import Any, Dict, List, Optional

import requests
import requests.adapters

from ...api.source import SourceCdrom, SourceDisk, SourceNic, SourceVMDescription, SourceVnicProfile
from ...api.types import SourceVM
from ...core.exceptions import ProviderError, wrap_provider
from ...core.logger import Log
from ...core.utils import U
from ..base import Credentials, SourceClient

VM_FOLLOW = ",".join(
    [
        "disk_attachments.disk",
        "nics.vnic_profile.network",
        "cdroms",
        "floppies",
        "watchdogs",
        "graphics_consoles",
        "host_devices",
        "reported_devices",
    ]
)


def _bool(v: Any) -> Optional[bool]:
    if v is None:
        return None
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() == "true"


def _int(v: Any, default: Optional[int] = None) -> Optional[int]:
    if v is None or v == "":
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _items(obj: Optional[Dict[str, Any]], key: str, item_key: str) -> List[Dict[str, Any]]:
    """oVirt JSON wraps collections: {"nics": {"nic": [...]}}."""
    coll = (obj or {}).get(key) or {}
    if isinstance(coll, list):
        return coll
    return list(coll.get(item_key) or [])


def _sub(obj: Optional[Dict[str, Any]], *path: str) -> Any:
    cur: Any = obj or {}
    for p in path:
        if not isinstance(cur, dict):
            return None
        cur = cur.get(p)
    return cur


class OvirtClient(SourceClient):
    def __init__(
        self,
        credentials: Credentials,
        *,
        timeout: float = 60.0,
        logger: Optional[logging.Logger] = None,
        http_client: Optional[Any] = None,  # For testing/mocking
    ):
        self.credentials = credentials
        self.base_url = credentials.api_url.rstrip("/")
        self.timeout = timeout
        self.logger = logger or Log.get("ovirt")
        self._http_client = http_client or requests
        self._ca_file: Optional[str] = None
        self._session: Optional[Any] = None

    # -- session -----------------------------------------------------------

    @property
    def session(self) -> Any:
        if self._session is None:
            self._session = self._create_session()
        return self._session

    def _create_session(self) -> Any:
        session = self._http_client.Session()
        session.auth = (self.credentials.username, self.credentials.password)
        session.headers.update({"Accept": "application/json", "Content-Type": "application/json", "Version": "4"})
        session.verify = self._write_ca_file() if self.credentials.ca_cert else True

        adapter = self._http_client.adapters.HTTPAdapter(pool_connections=4, pool_maxsize=8, max_retries=3)
        session.mount("https://", adapter)
        session.mount("http://", adapter)
        return session

    def _write_ca_file(self) -> str:
        fd, path = tempfile.mkstemp(prefix="vmimport-ovirt-ca-", suffix=".pem")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(self.credentials.ca_cert or "")
        self._ca_file = path
        return path

    def close(self) -> None:
        if self._session is not None:
            self._session.close()
            self._session = None
        if self._ca_file:
            try:
                os.unlink(self._ca_file)
            except FileNotFoundError:
                pass
            self._ca_file = None

    def _request(self, method: str, path: str, **kw: Any) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        Log.trace(self.logger, "oVirt %s %s", method, url)
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kw)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise wrap_provider(f"oVirt API {method} {path} failed: {e}", e, url=url)
        if not resp.content:
            return {}
        try:
            return resp.json()
        except ValueError as e:
            raise wrap_provider(f"oVirt API {method} {path} returned invalid JSON", e, url=url)

    # -- VM lookup ---------------------------------------------------------

    def _find_vm(self, vm: SourceVM) -> Dict[str, Any]:
        if vm.id:
            try:
                return self._request("GET", f"vms/{vm.id}", params={"follow": VM_FOLLOW})
            except ProviderError as e:
                if not vm.name:
                    raise wrap_provider(f"Source VM {vm.id} not found", e)
        if vm.name:
            search = f"name={vm.name}"
            if vm.cluster is not None and vm.cluster.name:
                search += f" and cluster={vm.cluster.name}"
            found = _items(self._request("GET", "vms", params={"search": search, "follow": VM_FOLLOW}), "vm", "vm")
            if vm.cluster is not None and vm.cluster.id:
                found = [v for v in found if _sub(v, "cluster", "id") == vm.cluster.id]
            if found:
                return found[0]
        raise wrap_provider(f"Source VM {U.to_loggable_id(vm.id, vm.name)} not found")

    def get_vm(self, vm: SourceVM) -> SourceVMDescription:
        raw = self._find_vm(vm)
        desc = self._describe(raw)
        if desc.bios_type == "cluster_default" and desc.cluster_id:
            cluster = self._request("GET", f"clusters/{desc.cluster_id}")
            desc.cluster_name = cluster.get("name")
            desc.cluster_bios_type = cluster.get("bios_type")
        return desc

    def _describe(self, raw: Dict[str, Any]) -> SourceVMDescription:
        topology = _sub(raw, "cpu", "topology") or {}
        pins = _items(_sub(raw, "cpu", "cpu_tune"), "vcpu_pins", "vcpu_pin")
        desc = SourceVMDescription(
            id=str(raw.get("id") or ""),
            name=str(raw.get("name") or ""),
            status=raw.get("status"),
            os_type=_sub(raw, "os", "type"),
            timezone=_sub(raw, "time_zone", "name"),
            origin=raw.get("origin"),
            cluster_id=_sub(raw, "cluster", "id"),
            bios_type=_sub(raw, "bios", "type"),
            bios_boot_menu_enabled=_bool(_sub(raw, "bios", "boot_menu", "enabled")),
            cpu_architecture=_sub(raw, "cpu", "architecture"),
            cpu_sockets=_int(topology.get("sockets"), 1) or 1,
            cpu_cores=_int(topology.get("cores"), 1) or 1,
            cpu_threads=_int(topology.get("threads"), 1) or 1,
            cpu_pinning={str(p.get("vcpu")): str(p.get("cpu_set")) for p in pins} or None,
            cpu_shares=_int(raw.get("cpu_shares")),
            memory_bytes=_int(raw.get("memory"), 0) or 0,
            memory_ballooning=_bool(_sub(raw, "memory_policy", "ballooning")),
            memory_overcommit_percent=_int(_sub(raw, "memory_policy", "over_commit", "percent")),
            memory_guaranteed=_int(_sub(raw, "memory_policy", "guaranteed")),
            custom_properties={
                str(p.get("name")): str(p.get("value")) for p in _items(raw, "custom_properties", "custom_property")
            },
            display_type=_sub(raw, "display", "type"),
            graphics_protocols=[str(g.get("protocol")) for g in _items(raw, "graphics_consoles", "graphics_console")],
            has_illegal_images=_bool(raw.get("has_illegal_images")),
            ha_enabled=bool(_bool(_sub(raw, "high_availability", "enabled"))),
            ha_priority=_int(_sub(raw, "high_availability", "priority")),
            io_threads=_int(_sub(raw, "io", "threads")),
            migration_options={
                k: str(v) for k, v in (raw.get("migration") or {}).items() if not isinstance(v, (dict, list))
            },
            migration_downtime=_int(raw.get("migration_downtime")),
            numa_tune_mode=raw.get("numa_tune_mode"),
            rng_source=_sub(raw, "rng_device", "source"),
            soundcard_enabled=_bool(raw.get("soundcard_enabled")),
            start_paused=_bool(raw.get("start_paused")),
            tunnel_migration=_bool(raw.get("tunnel_migration")),
            storage_error_resume_behaviour=raw.get("storage_error_resume_behaviour"),
            usb_enabled=_bool(_sub(raw, "usb", "enabled")),
            host_devices=[str(h.get("name") or h.get("id")) for h in _items(raw, "host_devices", "host_device")],
            reported_devices=[
                str(d.get("name") or d.get("id")) for d in _items(raw, "reported_devices", "reported_device")
            ],
            quota_id=_sub(raw, "quota", "id"),
            watchdog_models=[str(w.get("model")) for w in _items(raw, "watchdogs", "watchdog") if w.get("model")],
            cdroms=[
                SourceCdrom(id=c.get("id"), storage_domain_type=_sub(c, "file", "storage_domain", "type"))
                for c in _items(raw, "cdroms", "cdrom")
            ],
            floppies=len(_items(raw, "floppies", "floppy")),
        )
        desc.nics = [self._describe_nic(n) for n in _items(raw, "nics", "nic")]
        desc.disks = [self._describe_disk(a) for a in _items(raw, "disk_attachments", "disk_attachment")]
        return desc

    @staticmethod
    def _describe_nic(raw: Dict[str, Any]) -> SourceNic:
        nic = SourceNic(
            id=raw.get("id"),
            name=raw.get("name"),
            interface=raw.get("interface"),
            mac_address=_sub(raw, "mac", "address"),
            plugged=_bool(raw.get("plugged")),
            on_boot=_bool(raw.get("on_boot")),
        )
        profile = raw.get("vnic_profile")
        if profile:
            network = profile.get("network") or {}
            nic.vnic_profile = SourceVnicProfile(
                id=profile.get("id"),
                name=profile.get("name"),
                network_id=network.get("id"),
                network_name=network.get("name"),
                pass_through=_sub(profile, "pass_through", "mode") == "enabled",
                port_mirroring=bool(_bool(profile.get("port_mirroring"))),
                custom_properties={
                    str(p.get("name")): str(p.get("value"))
                    for p in _items(profile, "custom_properties", "custom_property")
                },
                network_filter=_sub(profile, "network_filter", "id"),
                qos=_sub(profile, "qos", "id"),
            )
            nic.network_id = network.get("id")
            nic.network_name = network.get("name")
        return nic

    @staticmethod
    def _describe_disk(attachment: Dict[str, Any]) -> SourceDisk:
        disk = attachment.get("disk") or {}
        domains = _items(disk, "storage_domains", "storage_domain")
        domain = domains[0] if domains else {}
        return SourceDisk(
            id=str(disk.get("id") or attachment.get("id") or ""),
            alias=disk.get("alias") or disk.get("name"),
            size_bytes=_int(disk.get("provisioned_size"), 0) or 0,
            bootable=bool(_bool(attachment.get("bootable"))),
            read_only=bool(_bool(attachment.get("read_only"))),
            status=disk.get("status"),
            storage_type=disk.get("storage_type"),
            sgio=disk.get("sgio"),
            interface=disk.get("interface"),
            logical_name=disk.get("logical_name"),
            uses_scsi_reservation=_bool(disk.get("uses_scsi_reservation")),
            backup=disk.get("backup"),
            lun_storage=_sub(disk, "lun_storage", "id"),
            propagate_errors=_bool(disk.get("propagate_errors")),
            wipe_after_delete=_bool(disk.get("wipe_after_delete")),
            storage_domain_id=domain.get("id"),
            storage_domain_name=domain.get("name"),
            attachment_id=attachment.get("id"),
            attachment_interface=attachment.get("interface"),
            attachment_logical_name=attachment.get("logical_name"),
            attachment_pass_discard=_bool(attachment.get("pass_discard")),
            attachment_uses_scsi_reservation=_bool(attachment.get("uses_scsi_reservation")),
        )

    # -- actions -----------------------------------------------------------

    def get_vm_status(self, vm_id: str) -> str:
        return str(self._request("GET", f"vms/{vm_id}").get("status") or "")

    def stop_vm(self, vm_id: str) -> None:
        self._request("POST", f"vms/{vm_id}/stop", json={})

    def start_vm(self, vm_id: str) -> None:
        self._request("POST", f"vms/{vm_id}/start", json={})

    def create_snapshot(self, vm_id: str, description: str) -> str:
        body = {"description": description, "persist_memorystate": False}
        snapshot = self._request("POST", f"vms/{vm_id}/snapshots", json=body)
        snapshot_id = snapshot.get("id")
        if not snapshot_id:
            raise wrap_provider(f"oVirt did not return an id for the snapshot of VM {vm_id}")
        return str(snapshot_id)

    def remove_snapshot(self, vm_id: str, snapshot_id: str) -> None:
        self._request("DELETE", f"vms/{vm_id}/snapshots/{snapshot_id}")

    def get_disk_status(self, disk_id: str) -> Optional[str]:
        return self._request("GET", f"disks/{disk_id}").get("status")
