from __future__ import annotations

import json
import logging
from pathlib import Path

from ethgraph.config import settings
from ethgraph.core.errors import GraphPersistenceError
from ethgraph.core.models import Graph
from ethgraph.io.schemas import graph_from_dict, graph_to_dict

log = logging.getLogger(__name__)


def graph_path(filename: str, data_dir: str = settings.DATA_STORAGE_FOLDER) -> Path:
    return Path(data_dir) / filename


def save_graph(graph: Graph, filename: str, data_dir: str = settings.DATA_STORAGE_FOLDER) -> str:
    out_path = graph_path(filename, data_dir)
    try:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with out_path.open("w", encoding="utf-8") as f:
            json.dump(graph_to_dict(graph), f)
    except OSError as e:
        raise GraphPersistenceError(f"Could not write graph to {out_path}: {e}") from e

    log.info("Saved graph with %d edges and %d nodes as %s", graph.edge_count(), graph.node_count(), out_path)
    return str(out_path)


def load_graph(filename: str, data_dir: str = settings.DATA_STORAGE_FOLDER) -> Graph:
    in_path = graph_path(filename, data_dir)
    log.info("Trying to load %s", in_path)

    if not in_path.exists():
        raise GraphPersistenceError(f"File {in_path} not found.")
    try:
        with in_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise GraphPersistenceError(f"Could not read {in_path}: {e}") from e
    except ValueError as e:
        raise GraphPersistenceError(f"File {in_path} is not valid JSON: {e}") from e

    try:
        graph = graph_from_dict(data)
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise GraphPersistenceError(f"File {in_path} is not a valid graph: {e}") from e

    log.info("Loaded graph with %d nodes and %d edges", graph.node_count(), graph.edge_count())
    return graph
