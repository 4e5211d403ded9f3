"""
In-memory causal DAG.

A CausalGraph is hydrated once from a serialized spec into indexed forward
and reverse adjacency maps. Every read operation (ancestor queries, path
enumeration, d-separation) reuses those maps; nothing rescans the edge list.

Hydration fails with MalformedGraph on:
- duplicate node names
- edges referencing unknown nodes
- self-loops or exact duplicate edges
- cycles

The graph is read-only after hydration and safe to share between readers.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import (
    Any,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    Union,
)

from pydantic import ValidationError

from causalcore.config import GraphConfig
from causalcore.errors import GraphTooLarge, InvalidClaim, MalformedGraph
from causalcore.graph.models import (
    CausalEdge,
    CausalNode,
    DagSpec,
    DSeparationResult,
    NodeKind,
    normalize_token,
)

logger = logging.getLogger(__name__)

NodeInput = Union[CausalNode, Mapping[str, Any], str]
EdgeInput = Union[CausalEdge, Mapping[str, Any]]


class CausalGraph:
    """Directed acyclic graph of named variables and signed edges.

    Example:
        >>> graph = CausalGraph.hydrate(
        ...     nodes=["Confounder", "Treatment", "Outcome"],
        ...     edges=[
        ...         {"from": "Confounder", "to": "Treatment", "sign": "positive"},
        ...         {"from": "Confounder", "to": "Outcome", "sign": "positive"},
        ...         {"from": "Treatment", "to": "Outcome", "sign": "positive"},
        ...     ],
        ... )
        >>> sorted(graph.ancestors_of("Outcome"))
        ['Confounder', 'Treatment']
    """

    def __init__(
        self,
        nodes: Dict[str, CausalNode],
        edges: List[CausalEdge],
        config: Optional[GraphConfig] = None,
    ):
        """Build adjacency indexes. Use :meth:`hydrate` instead of calling directly."""
        self.config = config or GraphConfig()
        self._nodes = nodes
        self._edges = edges
        self._forward: Dict[str, List[str]] = {name: [] for name in nodes}
        self._reverse: Dict[str, List[str]] = {name: [] for name in nodes}
        self._edges_by_pair: Dict[Tuple[str, str], List[CausalEdge]] = {}
        self._normalized: Dict[str, str] = {}

        for name in nodes:
            self._normalized.setdefault(normalize_token(name), name)

        for edge in edges:
            pair = edge.key
            if pair not in self._edges_by_pair:
                self._edges_by_pair[pair] = []
                self._forward[edge.source].append(edge.target)
                self._reverse[edge.target].append(edge.source)
            self._edges_by_pair[pair].append(edge)

        self._topological = self._compute_topological_order()

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def hydrate(
        cls,
        nodes: Iterable[NodeInput],
        edges: Iterable[EdgeInput],
        config: Optional[GraphConfig] = None,
    ) -> "CausalGraph":
        """Load a graph from serialized nodes and edges.

        Args:
            nodes: CausalNode instances, dicts, or bare node names
            edges: CausalEdge instances or dicts (``from``/``to`` or ``source``/``target``)
            config: Size caps; defaults to GraphConfig()

        Raises:
            MalformedGraph: Duplicate nodes, dangling edges, self-loops, cycles
            GraphTooLarge: Node count exceeds config.max_nodes
        """
        config = config or GraphConfig()
        parsed_nodes = [_coerce_node(item) for item in nodes]

        if len(parsed_nodes) > config.max_nodes:
            raise GraphTooLarge(len(parsed_nodes), config.max_nodes)

        node_map: Dict[str, CausalNode] = {}
        for node in parsed_nodes:
            if node.name in node_map:
                raise MalformedGraph(
                    f"Duplicate node name: '{node.name}'",
                    details={"node": node.name},
                )
            node_map[node.name] = node

        parsed_edges: List[CausalEdge] = []
        seen: Set[Tuple[Any, ...]] = set()
        for item in edges:
            edge = _coerce_edge(item)
            for endpoint in (edge.source, edge.target):
                if endpoint not in node_map:
                    raise MalformedGraph(
                        f"Edge {edge.describe()} references unknown node '{endpoint}'",
                        details={"edge": edge.describe(), "node": endpoint},
                    )
            if edge.identity in seen:
                raise MalformedGraph(
                    f"Duplicate edge {edge.describe()} with identical metadata",
                    details={"edge": edge.describe()},
                )
            seen.add(edge.identity)
            parsed_edges.append(edge)

        graph = cls(node_map, parsed_edges, config)
        logger.debug(
            f"Hydrated causal graph with {len(node_map)} nodes and {len(parsed_edges)} edges"
        )
        return graph

    @classmethod
    def from_spec(
        cls,
        spec: Union[DagSpec, Mapping[str, Any]],
        config: Optional[GraphConfig] = None,
    ) -> "CausalGraph":
        """Hydrate from a ``{"nodes": [...], "edges": [...]}`` mapping or DagSpec."""
        if isinstance(spec, DagSpec):
            return cls.hydrate(spec.nodes, spec.edges, config)
        if not isinstance(spec, Mapping):
            raise MalformedGraph("Graph spec must be a mapping with 'nodes' and 'edges'")
        nodes = spec.get("nodes") or []
        edges = spec.get("edges") or []
        if not isinstance(nodes, list) or not isinstance(edges, list):
            raise MalformedGraph("Graph spec 'nodes' and 'edges' must be lists")
        return cls.hydrate(nodes, edges, config)

    def _compute_topological_order(self) -> List[str]:
        in_degree = {name: len(parents) for name, parents in self._reverse.items()}
        queue = deque(name for name in self._nodes if in_degree[name] == 0)
        order: List[str] = []

        while queue:
            current = queue.popleft()
            order.append(current)
            for child in self._forward[current]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)

        if len(order) != len(self._nodes):
            cyclic = sorted(name for name, degree in in_degree.items() if degree > 0)
            raise MalformedGraph(
                f"Graph contains a cycle through: {', '.join(cyclic)}",
                details={"cycle_nodes": cyclic},
            )
        return order

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[CausalNode]:
        return list(self._nodes.values())

    @property
    def node_names(self) -> List[str]:
        return list(self._nodes)

    @property
    def edges(self) -> List[CausalEdge]:
        return list(self._edges)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.resolve(name) is not None

    def node(self, name: str) -> CausalNode:
        return self._nodes[self.require(name)]

    def resolve(self, name: str) -> Optional[str]:
        """Map a caller-supplied name to a node name.

        Exact match first, then normalized match (case and punctuation
        insensitive). Returns None if neither matches.
        """
        if not isinstance(name, str):
            return None
        stripped = name.strip()
        if stripped in self._nodes:
            return stripped
        return self._normalized.get(normalize_token(stripped))

    def require(self, name: str) -> str:
        """Resolve a name or raise InvalidClaim."""
        resolved = self.resolve(name)
        if resolved is None:
            raise InvalidClaim(
                f"Variable '{name}' is not part of the causal graph",
                details={"variable": name},
            )
        return resolved

    def parents(self, name: str) -> List[str]:
        return list(self._reverse[self.require(name)])

    def children(self, name: str) -> List[str]:
        return list(self._forward[self.require(name)])

    def edges_between(self, source: str, target: str) -> List[CausalEdge]:
        """All (possibly parallel) edges from source to target."""
        pair = (self.require(source), self.require(target))
        return list(self._edges_by_pair.get(pair, []))

    def topological_order(self) -> List[str]:
        return list(self._topological)

    def exogenous_roots(self) -> List[str]:
        """Nodes declared exogenous, plus parentless nodes."""
        return [
            name
            for name in self._topological
            if self._nodes[name].kind == NodeKind.EXOGENOUS or not self._reverse[name]
        ]

    # ------------------------------------------------------------------
    # Reachability
    # ------------------------------------------------------------------

    def ancestors_of(self, name: str) -> Set[str]:
        """Nodes with a directed path into ``name``.

        Breadth-first over reverse edges. The visited set is bounded by the
        node count; reaching the start node again means a cycle.
        """
        start = self.require(name)
        return self._bfs(start, self._reverse, blocked=frozenset())

    def ancestors_avoiding(self, name: str, blocked: Iterable[str]) -> Set[str]:
        """Ancestors of ``name`` reachable without passing through ``blocked``."""
        start = self.require(name)
        blocked_names = frozenset(self.require(item) for item in blocked)
        return self._bfs(start, self._reverse, blocked=blocked_names)

    def descendants_of(self, name: str) -> Set[str]:
        start = self.require(name)
        return self._bfs(start, self._forward, blocked=frozenset())

    def has_path(self, source: str, target: str) -> bool:
        return self.require(target) in self.descendants_of(source)

    def mediators(self, source: str, target: str) -> Set[str]:
        """Nodes strictly between source and target on some directed path."""
        return self.descendants_of(source) & self.ancestors_of(target)

    def _bfs(
        self,
        start: str,
        adjacency: Dict[str, List[str]],
        blocked: frozenset,
    ) -> Set[str]:
        visited: Set[str] = set()
        queue = deque([start])
        bound = len(self._nodes)

        while queue:
            current = queue.popleft()
            for neighbor in adjacency[current]:
                if neighbor == start:
                    raise MalformedGraph(
                        f"Cycle detected through '{start}'",
                        details={"node": start},
                    )
                if neighbor in visited or neighbor in blocked:
                    continue
                visited.add(neighbor)
                if len(visited) > bound:
                    raise MalformedGraph(
                        f"Traversal from '{start}' exceeded node bound {bound}",
                        details={"node": start},
                    )
                queue.append(neighbor)

        return visited

    def paths_between(
        self,
        source: str,
        target: str,
        max_paths: Optional[int] = None,
    ) -> Iterator[List[str]]:
        """Lazily yield simple directed paths from source to target.

        Enumeration stops after ``max_paths`` (default
        ``config.max_paths_per_query``) paths.
        """
        start = self.require(source)
        end = self.require(target)
        limit = max_paths or self.config.max_paths_per_query
        if start == end:
            return

        # Prune branches that cannot reach the target
        reachable = self.ancestors_of(end) | {end}
        if start not in reachable:
            return

        produced = 0
        stack: List[Tuple[str, List[str]]] = [(start, [start])]
        while stack:
            current, path = stack.pop()
            if current == end:
                yield path
                produced += 1
                if produced >= limit:
                    if stack:
                        logger.warning(
                            f"Path enumeration capped at {limit} paths "
                            f"between '{start}' and '{end}'"
                        )
                    return
                continue

            for child in reversed(self._forward[current]):
                if child in reachable and child not in path:
                    stack.append((child, path + [child]))

    # ------------------------------------------------------------------
    # d-separation
    # ------------------------------------------------------------------

    def check_d_separation(
        self,
        x: str,
        y: str,
        conditioned_on: Sequence[str] = (),
    ) -> DSeparationResult:
        """Approximate d-separation via undirected paths.

        A path counts as active when none of its interior nodes is
        conditioned on. Colliders are not treated specially.
        """
        start = self.require(x)
        end = self.require(y)
        conditioned = {normalize_token(item) for item in conditioned_on}

        active = [
            path
            for path in self._undirected_paths(start, end)
            if all(normalize_token(node) not in conditioned for node in path[1:-1])
        ]
        return DSeparationResult(
            d_separated=not active,
            active_paths=active,
            note=(
                "No active paths remain after conditioning."
                if not active
                else "At least one active path remains; variables are not "
                "d-separated under this conditioning set."
            ),
        )

    def _connected_component(self, node: str) -> Set[str]:
        seen = {node}
        queue = deque([node])
        while queue:
            current = queue.popleft()
            for neighbor in self._forward[current] + self._reverse[current]:
                if neighbor not in seen:
                    seen.add(neighbor)
                    queue.append(neighbor)
        return seen

    def _undirected_paths(self, start: str, end: str) -> List[List[str]]:
        """Simple undirected paths from start to end, bounded three ways.

        Path length is capped by ``max_undirected_depth``, results by
        ``max_paths_per_query`` and generated partial paths by
        ``max_explored_paths``.
        """
        component = self._connected_component(end)
        if start not in component:
            return []

        max_depth = self.config.max_undirected_depth
        limit = self.config.max_paths_per_query
        budget = self.config.max_explored_paths
        paths: List[List[str]] = []
        stack: List[List[str]] = [[start]]
        explored = 1

        while stack and len(paths) < limit:
            path = stack.pop()
            current = path[-1]
            if current == end:
                paths.append(path)
                continue
            if len(path) > max_depth:
                continue
            for neighbor in self._forward[current] + self._reverse[current]:
                if neighbor not in component or neighbor in path:
                    continue
                if explored >= budget:
                    logger.warning(
                        f"Undirected path search between '{start}' and '{end}' "
                        f"stopped after exploring {budget} partial paths"
                    )
                    return paths
                stack.append(path + [neighbor])
                explored += 1

        return paths

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_spec(self) -> Dict[str, Any]:
        return DagSpec(nodes=self.nodes, edges=self.edges).to_json()

    def __repr__(self) -> str:
        return f"CausalGraph(nodes={len(self._nodes)}, edges={len(self._edges)})"


def _coerce_node(item: NodeInput) -> CausalNode:
    if isinstance(item, CausalNode):
        return item
    payload: Any = {"name": item} if isinstance(item, str) else item
    if isinstance(payload, Mapping) and "name" not in payload and "id" in payload:
        payload = {**payload, "name": payload["id"]}
    try:
        return CausalNode.model_validate(payload)
    except ValidationError as exc:
        raise MalformedGraph(f"Invalid node spec {item!r}: {exc}") from exc


def _coerce_edge(item: EdgeInput) -> CausalEdge:
    if isinstance(item, CausalEdge):
        return item
    try:
        return CausalEdge.model_validate(item)
    except ValidationError as exc:
        raise MalformedGraph(f"Invalid edge spec {item!r}: {exc}") from exc
