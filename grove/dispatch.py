"""Run commands inside a registered tree with its links exported.

The child runs in the target's root and inherits the parent environment
plus one variable per outgoing link (``GROVE_LINK_<ALIAS>``) and the
target's own root and name. If the tree's ``grove.toml`` declares a script
under ``[scripts]`` for the requested command, that script is run through
the shell instead.
"""
from __future__ import annotations

import logging
import os
import shlex
import signal
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import toml

from grove.config.paths import get_manifest_path
from grove.errors import ChildProcessSpawnError
from grove.links.graph import LinkGraph
from grove.naming import NameLike, parse
from grove.registry import Registry

logger = logging.getLogger(__name__)


def alias_env_suffix(alias: str) -> str:
    return alias.upper().replace("-", "_")


def load_scripts(tree_root: Path) -> Dict[str, str]:
    """``[scripts]`` table of the tree's manifest; empty if there is none."""
    manifest = get_manifest_path(tree_root)
    if not manifest.is_file():
        return {}
    try:
        with open(manifest, 'r', encoding='utf-8') as f:
            data = toml.load(f)
    except (OSError, toml.TomlDecodeError) as e:
        logger.warning("Ignoring unreadable manifest %s: %s", manifest, e)
        return {}
    scripts = data.get('scripts', {})
    if not isinstance(scripts, dict):
        logger.warning("Ignoring [scripts] in %s: not a table", manifest)
        return {}
    return {str(k): str(v) for k, v in scripts.items()}


class CommandDispatcher:
    """Spawns child processes for registered trees."""

    def __init__(self, registry: Registry, graph: LinkGraph, env_prefix: str = "GROVE_"):
        self.registry = registry
        self.graph = graph
        self.env_prefix = env_prefix

    def environment_for(self, target: NameLike) -> Dict[str, str]:
        """Variables added to the child environment for ``target``.

        Raises:
            NotFoundError: target is not registered
        """
        name = parse(target)
        node = self.registry.lookup(name)
        env = {
            f"{self.env_prefix}TARGET_ROOT": str(node.root_path),
            f"{self.env_prefix}TARGET_NAME": str(name),
        }
        for edge in self.graph.edges_from(name):
            target_root = self.registry.lookup(edge.target).root_path
            key = f"{self.env_prefix}LINK_{alias_env_suffix(edge.alias)}"
            if key in env:
                logger.warning("Link %s overrides %s already set by another alias", edge, key)
            env[key] = str(Path(target_root).resolve())
        return env

    def build_command(self, root: Path, command: str, args: Sequence[str] = ()):
        """Return ``(argv_or_script, use_shell)`` for ``command`` in ``root``."""
        script = load_scripts(root).get(command)
        if script is not None:
            if args:
                script = script + " " + " ".join(shlex.quote(a) for a in args)
            return script, True
        return [command, *args], False

    def exec(self, target: NameLike, command: str, args: Sequence[str] = ()) -> int:
        """Run ``command`` in ``target``'s root and return its exit code.

        Raises:
            NotFoundError: target is not registered
            ChildProcessSpawnError: the child could not be started
        """
        name = parse(target)
        node = self.registry.lookup(name)
        root = node.root_path

        env = dict(os.environ)
        env.update(self.environment_for(name))

        cmd, use_shell = self.build_command(root, command, args)
        argv: List[str] = [cmd] if use_shell else list(cmd)
        logger.info("Running %s in %s (%s)", cmd, name, root)

        popen_kwargs = {}
        if os.name == "nt":
            # Needed so CTRL_BREAK_EVENT reaches only the child group.
            popen_kwargs['creationflags'] = subprocess.CREATE_NEW_PROCESS_GROUP

        try:
            process = subprocess.Popen(cmd, shell=use_shell, cwd=str(root), env=env, **popen_kwargs)
        except (OSError, ValueError) as e:
            raise ChildProcessSpawnError(name, argv, str(e)) from e

        try:
            returncode = process.wait()
        except KeyboardInterrupt:
            self._forward_interrupt(process)
            raise

        logger.debug("%s in %s exited with %s", argv[0], name, returncode)
        return returncode

    def _forward_interrupt(self, process: subprocess.Popen) -> Optional[int]:
        """Make sure the child sees the interrupt, then wait for it.

        A terminal delivers Ctrl-C to the whole foreground process group, so a
        child sharing our group already has it; only a child in its own group
        (always the case on Windows) is signalled here.
        """
        if _in_own_process_group(process):
            logger.info("Interrupted, forwarding to child %s", process.pid)
            sig = signal.CTRL_BREAK_EVENT if os.name == "nt" else signal.SIGINT
            try:
                process.send_signal(sig)
            except OSError as e:
                logger.debug("Could not signal child %s: %s", process.pid, e)
        else:
            logger.info("Interrupted, waiting for child %s", process.pid)
        return process.wait()


def _in_own_process_group(process: subprocess.Popen) -> bool:
    if os.name == "nt":
        return True
    try:
        return os.getpgid(process.pid) != os.getpgrp()
    except OSError:
        return False
