from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Set


@dataclass
class NodeState:
    """
    Mutable state of a single node.

    - node_id / node_ids are set once by `init`.
    - topology is replaced wholesale by every `topology` message.
    - seen has set semantics; `messages` keeps first-seen order for reads.
    - next_msg_id is consumed once per outbound envelope and never reused.
    """

    node_id: str = ""
    node_ids: List[str] = field(default_factory=list)
    topology: Dict[str, List[str]] = field(default_factory=dict)
    next_msg_id: int = 0

    _seen: Set[int] = field(default_factory=set, repr=False)
    _log: List[int] = field(default_factory=list, repr=False)

    def init(self, node_id: str, node_ids: List[str]) -> None:
        self.node_id = str(node_id)
        self.node_ids = list(node_ids)

    def take_msg_id(self) -> int:
        mid = self.next_msg_id
        self.next_msg_id += 1
        return mid

    def set_topology(self, topology: Dict[str, List[str]]) -> None:
        self.topology = {str(k): list(v) for k, v in topology.items()}

    def neighbors(self) -> List[str]:
        return list(self.topology.get(self.node_id, []))

    def remember(self, value: int) -> bool:
        """Returns True if the value is new."""
        if value in self._seen:
            return False
        self._seen.add(value)
        self._log.append(value)
        return True

    @property
    def messages(self) -> List[int]:
        return list(self._log)
