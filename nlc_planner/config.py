"""
Copyright 2025 AUMOVIO. All rights reserved.
"""
import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from omegaconf import DictConfig, OmegaConf

from nlc_planner.planning_model.TrackingNMPC import TrackingNMPC
from nlc_planner.solver.ocp_solver import OCPSolver

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "configs" / "planner.yaml"
CONFIG_GROUPS = ("time", "constraints", "controller", "reference", "solver")


def load_planner_config(path: Optional[Union[str, Path]] = None,
                        overrides: Optional[Union[Mapping[str, Any], DictConfig]] = None) -> DictConfig:
    """
    Load the packaged planner defaults, optionally replaced by `path`, and merge `overrides` on top.

    Unknown groups or keys in `overrides` raise, the merged config is struct-locked
    like the defaults.
    """
    cfg = OmegaConf.load(DEFAULT_CONFIG_PATH)
    OmegaConf.set_struct(cfg, True)
    if path is not None:
        cfg = OmegaConf.merge(cfg, OmegaConf.load(path))
    if overrides is not None:
        cfg = OmegaConf.merge(cfg, overrides)
    return cfg


def build_planner(cfg: Optional[Union[Mapping[str, Any], DictConfig]] = None,
                  ocp_solver: Optional[OCPSolver] = None) -> TrackingNMPC:
    """Construct a `TrackingNMPC` from a (partial) planner config merged over the defaults."""
    cfg = load_planner_config(overrides=cfg)
    container = OmegaConf.to_container(cfg, resolve=True)
    groups = {name: container[name] for name in CONFIG_GROUPS}
    logger.debug(f"Building planner with {container}")
    return TrackingNMPC(**groups, verbose=bool(container.get("verbose", False)), ocp_solver=ocp_solver)
