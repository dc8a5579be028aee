#!/usr/bin/env python3

import threading
from dataclasses import dataclass
from gifwylib.core import utils
from gifwylib.core.commands import EditCommand
from gifwylib.core.timeline import Timeline

#============================================

DEFAULT_MAX_COMMANDS = 50
DEFAULT_MAX_MEMORY_BYTES = 500 * 1024 * 1024

#============================================

@dataclass(frozen=True)
class HistoryState:
	changed: bool
	message: str
	can_undo: bool
	can_redo: bool
	undo_label: str
	redo_label: str
	undo_count: int
	redo_count: int
	memory_bytes: int

#============================================

class CommandStack():
	"""
	Undo/redo over one Timeline with a command-count limit and a memory
	ceiling on the undo stack. Eviction drops the oldest commands for good.
	"""
	def __init__(self, max_commands: int = DEFAULT_MAX_COMMANDS,
		max_memory_bytes: int = DEFAULT_MAX_MEMORY_BYTES):
		if max_commands < 1:
			raise RuntimeError("max_commands must be at least 1")
		if max_memory_bytes < 0:
			raise RuntimeError("max_memory_bytes must not be negative")
		self.max_commands = max_commands
		self.max_memory_bytes = max_memory_bytes
		self._undo_stack = []
		self._redo_stack = []
		self._lock = threading.Lock()

	#============================
	def execute(self, command: EditCommand, timeline: Timeline) -> HistoryState:
		with self._lock:
			command.capture(timeline)
			if command.is_noop:
				return self._state(False, f"{command.label}: nothing to change")
			while len(self._undo_stack) > 0 and \
				self._undo_memory() + command.memory_cost > self.max_memory_bytes:
				evicted = self._undo_stack.pop(0)
				utils.log(f"history: evicted '{evicted.label}' for memory")
			command.apply(timeline)
			self._redo_stack = []
			if command.memory_cost > self.max_memory_bytes:
				utils.warn(f"'{command.label}' needs {utils.format_bytes(command.memory_cost)}, "
					"more than the undo memory ceiling; it cannot be undone")
				return self._state(True, f"applied {command.label} (not undoable)")
			self._undo_stack.append(command)
			while len(self._undo_stack) > self.max_commands:
				self._undo_stack.pop(0)
			return self._state(True, f"applied {command.label}")

	#============================
	def undo(self, timeline: Timeline) -> HistoryState:
		with self._lock:
			if len(self._undo_stack) == 0:
				return self._state(False, "nothing to undo")
			command = self._undo_stack.pop()
			command.invert(timeline)
			self._redo_stack.append(command)
			return self._state(True, f"undid {command.label}")

	#============================
	def redo(self, timeline: Timeline) -> HistoryState:
		with self._lock:
			if len(self._redo_stack) == 0:
				return self._state(False, "nothing to redo")
			command = self._redo_stack.pop()
			command.apply(timeline)
			self._undo_stack.append(command)
			return self._state(True, f"redid {command.label}")

	#============================
	def clear(self) -> HistoryState:
		with self._lock:
			self._undo_stack = []
			self._redo_stack = []
			return self._state(True, "history cleared")

	#============================
	def state(self) -> HistoryState:
		with self._lock:
			return self._state(False, "")

	#============================
	def recent_labels(self, count: int = 5) -> list:
		with self._lock:
			if count <= 0:
				return []
			return [command.label for command in reversed(self._undo_stack[-count:])]

	#============================
	@property
	def can_undo(self) -> bool:
		with self._lock:
			return len(self._undo_stack) > 0

	#============================
	@property
	def can_redo(self) -> bool:
		with self._lock:
			return len(self._redo_stack) > 0

	#============================
	@property
	def memory_bytes(self) -> int:
		with self._lock:
			return self._undo_memory()

	#============================
	def _undo_memory(self) -> int:
		return sum(command.memory_cost for command in self._undo_stack)

	#============================
	def _state(self, changed: bool, message: str) -> HistoryState:
		undo_label = ""
		if len(self._undo_stack) > 0:
			undo_label = self._undo_stack[-1].label
		redo_label = ""
		if len(self._redo_stack) > 0:
			redo_label = self._redo_stack[-1].label
		return HistoryState(
			changed=changed,
			message=message,
			can_undo=len(self._undo_stack) > 0,
			can_redo=len(self._redo_stack) > 0,
			undo_label=undo_label,
			redo_label=redo_label,
			undo_count=len(self._undo_stack),
			redo_count=len(self._redo_stack),
			memory_bytes=self._undo_memory(),
		)
