"""
Process enumeration and attachment using Windows API.

Provides process lookup by executable name, module listing, and a
ReadProcessMemory wrapper that never raises for unreadable memory.
"""

from __future__ import annotations

import ctypes
import ctypes.wintypes as wt
import logging
import sys
from dataclasses import dataclass

log = logging.getLogger(__name__)

# Windows constants
PROCESS_VM_READ = 0x0010
PROCESS_QUERY_INFORMATION = 0x0400
TH32CS_SNAPPROCESS = 0x00000002
TH32CS_SNAPMODULE = 0x00000008
TH32CS_SNAPMODULE32 = 0x00000010
INVALID_HANDLE_VALUE = ctypes.c_void_p(-1).value
MAX_PATH = 260
MAX_MODULE_NAME32 = 255


class PROCESSENTRY32W(ctypes.Structure):
    _fields_ = [
        ("dwSize", wt.DWORD),
        ("cntUsage", wt.DWORD),
        ("th32ProcessID", wt.DWORD),
        ("th32DefaultHeapID", ctypes.POINTER(ctypes.c_ulong)),
        ("th32ModuleID", wt.DWORD),
        ("cntThreads", wt.DWORD),
        ("th32ParentProcessID", wt.DWORD),
        ("pcPriClassBase", ctypes.c_long),
        ("dwFlags", wt.DWORD),
        ("szExeFile", ctypes.c_wchar * MAX_PATH),
    ]


class MODULEENTRY32W(ctypes.Structure):
    _fields_ = [
        ("dwSize", wt.DWORD),
        ("th32ModuleID", wt.DWORD),
        ("th32ProcessID", wt.DWORD),
        ("GlblcntUsage", wt.DWORD),
        ("ProccntUsage", wt.DWORD),
        ("modBaseAddr", ctypes.POINTER(ctypes.c_byte)),
        ("modBaseSize", wt.DWORD),
        ("hModule", wt.HMODULE),
        ("szModule", ctypes.c_wchar * (MAX_MODULE_NAME32 + 1)),
        ("szExePath", ctypes.c_wchar * MAX_PATH),
    ]


def _load_kernel32():
    """Bind the kernel32 calls we use, or None off Windows."""
    if sys.platform != "win32":
        return None

    k32 = ctypes.windll.kernel32

    k32.OpenProcess.argtypes = [wt.DWORD, wt.BOOL, wt.DWORD]
    k32.OpenProcess.restype = wt.HANDLE

    k32.CloseHandle.argtypes = [wt.HANDLE]
    k32.CloseHandle.restype = wt.BOOL

    k32.ReadProcessMemory.argtypes = [
        wt.HANDLE,
        ctypes.c_void_p,
        ctypes.c_void_p,
        ctypes.c_size_t,
        ctypes.POINTER(ctypes.c_size_t),
    ]
    k32.ReadProcessMemory.restype = wt.BOOL

    k32.CreateToolhelp32Snapshot.argtypes = [wt.DWORD, wt.DWORD]
    k32.CreateToolhelp32Snapshot.restype = wt.HANDLE

    k32.Process32FirstW.argtypes = [wt.HANDLE, ctypes.POINTER(PROCESSENTRY32W)]
    k32.Process32FirstW.restype = wt.BOOL

    k32.Process32NextW.argtypes = [wt.HANDLE, ctypes.POINTER(PROCESSENTRY32W)]
    k32.Process32NextW.restype = wt.BOOL

    k32.Module32FirstW.argtypes = [wt.HANDLE, ctypes.POINTER(MODULEENTRY32W)]
    k32.Module32FirstW.restype = wt.BOOL

    k32.Module32NextW.argtypes = [wt.HANDLE, ctypes.POINTER(MODULEENTRY32W)]
    k32.Module32NextW.restype = wt.BOOL

    return k32


kernel32 = _load_kernel32()


@dataclass(frozen=True)
class ProcessInfo:
    """Information about a running process."""
    pid: int
    name: str


@dataclass(frozen=True)
class ModuleInfo:
    """Information about a loaded module in a process."""
    name: str
    base_address: int
    size: int


def enumerate_processes() -> list[ProcessInfo]:
    """List all running processes."""
    processes: list[ProcessInfo] = []
    if kernel32 is None:
        return processes

    snap = kernel32.CreateToolhelp32Snapshot(TH32CS_SNAPPROCESS, 0)
    if snap == INVALID_HANDLE_VALUE:
        return processes

    try:
        entry = PROCESSENTRY32W()
        entry.dwSize = ctypes.sizeof(PROCESSENTRY32W)

        more = kernel32.Process32FirstW(snap, ctypes.byref(entry))
        while more:
            processes.append(ProcessInfo(entry.th32ProcessID, entry.szExeFile))
            more = kernel32.Process32NextW(snap, ctypes.byref(entry))
    finally:
        kernel32.CloseHandle(snap)

    return processes


def enumerate_modules(pid: int) -> list[ModuleInfo]:
    """List modules loaded in a process, in load order."""
    modules: list[ModuleInfo] = []
    if kernel32 is None:
        return modules

    snap = kernel32.CreateToolhelp32Snapshot(
        TH32CS_SNAPMODULE | TH32CS_SNAPMODULE32, pid
    )
    if snap == INVALID_HANDLE_VALUE:
        return modules

    try:
        entry = MODULEENTRY32W()
        entry.dwSize = ctypes.sizeof(MODULEENTRY32W)

        more = kernel32.Module32FirstW(snap, ctypes.byref(entry))
        while more:
            base = ctypes.cast(entry.modBaseAddr, ctypes.c_void_p).value or 0
            modules.append(ModuleInfo(entry.szModule, base, entry.modBaseSize))
            more = kernel32.Module32NextW(snap, ctypes.byref(entry))
    finally:
        kernel32.CloseHandle(snap)

    return modules


def executable_name(name: str) -> str:
    """'Bug Fables' -> 'bug fables.exe' (lowercased for comparison)."""
    name = name.lower()
    return name if name.endswith(".exe") else name + ".exe"


def find_process(name: str) -> ProcessInfo | None:
    """Return the first running process whose executable matches `name`."""
    wanted = executable_name(name)
    for proc in enumerate_processes():
        if proc.name.lower() == wanted:
            return proc
    return None


class ProcessAttacher:
    """
    Read-only handle on another process.

    Usage:
        attacher = ProcessAttacher()
        if attacher.attach(pid):
            data = attacher.read(address, size)
        attacher.detach()
    """

    def __init__(self):
        self._handle: wt.HANDLE | None = None
        self._pid: int = 0
        self._modules: list[ModuleInfo] = []

    @property
    def is_attached(self) -> bool:
        return self._handle is not None

    @property
    def pid(self) -> int:
        return self._pid

    @property
    def modules(self) -> list[ModuleInfo]:
        return self._modules

    def attach(self, pid: int) -> bool:
        """
        Attach to a process by PID.

        Returns True on success.
        """
        self.detach()
        if kernel32 is None:
            log.debug("Process attach unavailable on %s", sys.platform)
            return False

        handle = kernel32.OpenProcess(
            PROCESS_VM_READ | PROCESS_QUERY_INFORMATION, False, pid
        )
        if not handle:
            return False

        self._handle = handle
        self._pid = pid
        self._modules = enumerate_modules(pid)
        return True

    def detach(self):
        """Detach from current process."""
        if self._handle and kernel32 is not None:
            kernel32.CloseHandle(self._handle)
        self._handle = None
        self._pid = 0
        self._modules = []

    def read(self, address: int, size: int) -> bytes | None:
        """
        Read exactly `size` bytes from process memory.

        Returns None if the read fails or comes back short.
        """
        if not self._handle or size <= 0 or address <= 0:
            return None

        buf = ctypes.create_string_buffer(size)
        bytes_read = ctypes.c_size_t(0)

        ok = kernel32.ReadProcessMemory(
            self._handle,
            ctypes.c_void_p(address),
            buf,
            size,
            ctypes.byref(bytes_read),
        )

        if not ok or bytes_read.value != size:
            return None

        return buf.raw

    def get_base_address(self, module_name: str) -> int | None:
        """Base address of a loaded module, matched case-insensitively."""
        wanted = module_name.lower()
        for mod in self._modules:
            if mod.name.lower() == wanted:
                return mod.base_address
        return None

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.detach()

    def __del__(self):
        self.detach()
