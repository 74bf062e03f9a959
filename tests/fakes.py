"""Synthetic address space and game process for the memory tests."""

import struct

from fables_autosplit.memory.offsets import VARIANTS, Field, GameVersion
from fables_autosplit.memory.process import ModuleInfo, ProcessInfo
from fables_autosplit.memory.reader import OffsetPath

PAGE = 0x1000
HEAP_BASE = 0x10_0000_0000
MONO_BASE = 0x7FF8_0000_0000


class FakeMemory:
    """Page-mapped fake address space that also acts as a process attacher."""

    def __init__(self, modules=None):
        self.pages: dict[int, bytearray] = {}
        self.modules = list(modules or [])
        self.attached_pid = 0
        self.attach_ok = True
        self.detach_calls = 0
        self._next_block = HEAP_BASE

    # attacher surface
    @property
    def is_attached(self):
        return self.attached_pid != 0

    def attach(self, pid):
        if not self.attach_ok:
            return False
        self.attached_pid = pid
        return True

    def detach(self):
        self.detach_calls += 1
        self.attached_pid = 0

    def get_base_address(self, module_name):
        for mod in self.modules:
            if mod.name.lower() == module_name.lower():
                return mod.base_address
        return None

    # memory
    def read(self, address, size):
        out = bytearray()
        addr = address
        while len(out) < size:
            page = self.pages.get(addr // PAGE)
            if page is None:
                return None
            start = addr % PAGE
            take = min(PAGE - start, size - len(out))
            out += page[start:start + take]
            addr += take
        return bytes(out)

    def write(self, address, data):
        for i, b in enumerate(data):
            page = self.pages.setdefault((address + i) // PAGE, bytearray(PAGE))
            page[(address + i) % PAGE] = b

    def write_ptr(self, address, value):
        self.write(address, struct.pack("<Q", value))

    def unmap(self, address):
        self.pages.pop(address // PAGE, None)

    def alloc(self, size=PAGE):
        block = self._next_block
        self._next_block += max(size, 0x10000)
        self.write(block, bytes(size))
        return block

    def plant(self, path: OffsetPath, data: bytes):
        """Build every missing pointer along `path` and write `data` at its end."""
        steps = (0,) + path.offsets
        addr = self.get_base_address(path.module_name) + path.base_address
        for offset in steps[:-1]:
            slot = addr + offset
            current = self.read(slot, 8)
            ptr = int.from_bytes(current, "little") if current else 0
            if not ptr:
                ptr = self.alloc()
                self.write_ptr(slot, ptr)
            addr = ptr
        self.write(addr + steps[-1], data)
        return addr + steps[-1]

    def final_address(self, path: OffsetPath):
        steps = (0,) + path.offsets
        addr = self.get_base_address(path.module_name) + path.base_address
        for offset in steps[:-1]:
            addr = int.from_bytes(self.read(addr + offset, 8), "little")
        return addr + steps[-1]


class FakeGame:
    """A Bug Fables process laid out along the real offset table."""

    def __init__(self, version=GameVersion.V113_MONO_BLEEDING_EDGE, pid=1234):
        self.table = VARIANTS[version]
        self.pid = pid
        self.running = True
        self.memory = FakeMemory(modules=[
            ModuleInfo("Bug Fables.exe", 0x1_4000_0000, 0x100000),
            ModuleInfo(self.table.module_name, MONO_BASE, 0x800000),
        ])
        self.set_flags({})
        self.memory.plant(self.table.path(Field.ENEMY_ENCOUNTER),
                          bytes(self.table.enemy_encounter_size))
        self.set_room(0)
        self.memory.plant(self.table.path(Field.CURRENT_ROOM_NAME), b"0\x00")
        self.set_song(0)
        self.set_coroutine(0)
        self.set_battle(None)
        self.set_in_event(False)
        self.set_last_event(0)

    def path(self, field):
        return self.table.path(field)

    def set_flags(self, flags):
        data = bytearray(self.table.num_flags)
        for index, value in flags.items():
            data[index] = 1 if value else 0
        self.memory.plant(self.path(Field.FLAGS), bytes(data))

    def set_flag(self, index, value=True):
        addr = self.memory.final_address(self.path(Field.FLAGS))
        self.memory.write(addr + index, b"\x01" if value else b"\x00")

    def set_defeated(self, enemy, count):
        addr = self.memory.final_address(self.path(Field.ENEMY_ENCOUNTER))
        self.memory.write(addr + int(enemy) * 8 + 4, struct.pack("<i", count))

    def set_room(self, room_id):
        self.memory.plant(self.path(Field.CURRENT_ROOM_ID), struct.pack("<i", int(room_id)))

    def set_song(self, song_id):
        self.memory.plant(self.path(Field.FIRST_MUSIC_ID), struct.pack("<i", int(song_id)))

    def set_coroutine(self, handle):
        self.memory.plant(self.path(Field.MUSIC_COROUTINE), struct.pack("<q", handle))

    def set_battle(self, native_ptr):
        """None clears MainManager.battle; otherwise sets its cached pointer."""
        if native_ptr is None:
            slot = self.memory.final_address(self.path(Field.BATTLE_CONTROLLER))
            self.memory.write_ptr(slot, 0)
        else:
            self.memory.plant(self.path(Field.BATTLE), struct.pack("<Q", native_ptr))

    def set_in_event(self, in_event):
        self.memory.plant(self.path(Field.IN_EVENT), b"\x01" if in_event else b"\x00")

    def set_last_event(self, event_id):
        self.memory.plant(self.path(Field.LAST_EVENT), struct.pack("<i", int(event_id)))

    def exit(self):
        """The process is gone: no longer listed and its memory is unreadable."""
        self.running = False
        self.memory.pages.clear()

    def hide_memory(self):
        """Memory becomes unreadable while the process is still listed."""
        self.saved_pages = dict(self.memory.pages)
        self.memory.pages.clear()

    def restore_memory(self):
        self.memory.pages.update(self.saved_pages)

    # GameMemory hooks
    def find(self, name):
        if not self.running:
            return None
        return ProcessInfo(pid=self.pid, name="Bug Fables.exe")


