"""Link-stage orchestration for one compiled unit."""
from __future__ import annotations

import time
from pathlib import Path
from typing import Optional

from cratelink.backend.attributes import MetaItem
from cratelink.backend.crate_context import CrateContext
from cratelink.backend.link_meta import LinkMeta, LinkMetaError, build_link_meta
from cratelink.backend.linker import (
    Dependency,
    LinkError,
    LinkOrchestrator,
    LinkRequest,
    dependency_hashes,
    resolve_target_os,
)
from cratelink.backend.platform_detect import TargetPlatform, get_current_platform, parse_triple
from cratelink.backend.process import ProcessRunner
from cratelink.backend.symbol_hash import TypeDescriptor
from cratelink.compiler.loader import (
    LoadError,
    collect_link_args,
    get_effective_cwd,
    get_search_paths,
    get_sysroot,
    resolve_dependency,
    resolve_input_path,
    target_lib_dir,
)
from cratelink.internals.errors import CodedError
from cratelink.internals.parser import parse_attributes
from cratelink.internals.report import Reporter

PATH_SEPARATOR = "::"


class AttributeSource:
    """One attribute declaration input (a file or an ``--attr`` string)."""

    def __init__(self, name: str, text: str) -> None:
        self.name = name
        self.text = text
        self.reporter = Reporter(source=text, filename=name)

    def parse(self) -> list[MetaItem]:
        return parse_attributes(self.text)


def _read_sources(args, reporter: Reporter) -> Optional[list[AttributeSource]]:
    sources: list[AttributeSource] = []
    for attr_file in args.attrs:
        path = resolve_input_path(attr_file)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            LoadError("CE4011", path=str(path), reason=e.strerror or str(e)).report(reporter)
            return None
        sources.append(AttributeSource(str(path), text))
    for i, text in enumerate(args.attr, start=1):
        sources.append(AttributeSource(f"<attr #{i}>", text))
    return sources


def load_attributes(args, reporter: Reporter) -> tuple[Optional[list[MetaItem]], list[AttributeSource]]:
    """Parse every attribute source, reporting malformed ones.

    Returns:
        (attributes, sources); attributes is None if any source failed.
    """
    sources = _read_sources(args, reporter)
    if sources is None:
        return None, []

    attrs: list[MetaItem] = []
    failed = False
    for src in sources:
        try:
            attrs.extend(src.parse())
        except LinkMetaError as e:
            e.report(src.reporter)
            reporter.merge(src.reporter)
            failed = True
    return (None if failed else attrs), sources


def resolve_target(args, reporter: Reporter) -> Optional[TargetPlatform]:
    target = parse_triple(args.target) if args.target else get_current_platform()
    try:
        resolve_target_os(target)
    except LinkError as e:
        e.report(reporter)
        return None
    return target


def resolve_dependencies(args, target: TargetPlatform, reporter: Reporter) -> Optional[list[Dependency]]:
    if not args.dep:
        return []
    os_ = resolve_target_os(target)
    search_paths = get_search_paths()
    deps: list[Dependency] = []
    for dep in args.dep:
        try:
            deps.append(resolve_dependency(dep, os_, search_paths))
        except CodedError as e:
            e.report(reporter)
    if reporter.has_errors:
        return None
    return deps


def output_path_for(obj_path: Path, args) -> Path:
    """Requested output path: ``-o`` or the object stem in the effective cwd."""
    if args.out:
        return resolve_input_path(args.out)
    return get_effective_cwd() / obj_path.stem


def compute_link_meta(attrs: list[MetaItem], sources: list[AttributeSource], out_path: Path,
                      deps: list[Dependency], reporter: Reporter) -> Optional[LinkMeta]:
    try:
        return build_link_meta(attrs, out_path, dependency_hashes(deps), reporter)
    except LinkMetaError as e:
        # Spans are only meaningful when every item came from one source.
        if e.span is not None and len(sources) == 1:
            e.report(sources[0].reporter)
            reporter.merge(sources[0].reporter)
        else:
            e.span = None
            e.report(reporter)
        return None


def mangle_symbol(link_meta: LinkMeta, args) -> str:
    """Symbol name for ``--mangle PATH --type ENC`` under ``link_meta``."""
    ctx = CrateContext(link_meta)
    path = [seg for seg in args.mangle.split(PATH_SEPARATOR) if seg]
    return ctx.mangled_name(path, TypeDescriptor(args.type), exported=not args.internal)


def link_unit(obj_path: Path, reporter: Reporter, args,
              runner: Optional[ProcessRunner] = None) -> int:
    """Compute the unit's link identity and link its object file.

    Args:
        obj_path: The compiled object file.
        reporter: Reporter for error/warning collection.
        args: Parsed command line arguments.
        runner: Process boundary for the linker (real subprocesses if omitted).

    Returns:
        Exit code (0=success, 1=warnings, 2=errors).
    """
    if reporter.has_errors:
        return 2

    target = resolve_target(args, reporter)
    if target is None:
        return 2

    attrs, sources = load_attributes(args, reporter)
    if attrs is None:
        return 2

    deps = resolve_dependencies(args, target, reporter)
    if deps is None:
        return 2

    out_path = output_path_for(obj_path, args)
    link_meta = compute_link_meta(attrs, sources, out_path, deps, reporter)
    if link_meta is None:
        return 2

    if args.verbose:
        print(f"target: {target.triple}")
        print(f"link_meta: {link_meta}")
        if deps:
            print(f"Linking {len(deps)} crates:")
            for dep in deps:
                print(f"  - {dep.identity} ({dep.path})")
            print()

    if args.mangle:
        print(mangle_symbol(link_meta, args))
        return 1 if reporter.has_warnings else 0

    runtime_dir = target_lib_dir(get_sysroot(args.sysroot), target.triple)
    request = LinkRequest(
        obj_filename=obj_path,
        out_filename=out_path,
        link_meta=link_meta,
        target=target,
        building_library=args.lib,
        dependencies=deps,
        used_libraries=list(args.libs),
        link_args=list(args.link_args) + collect_link_args(attrs),
        addl_lib_search_paths=[resolve_input_path(p) for p in args.lib_dirs],
        save_temps=args.save_temps,
    )
    orchestrator = LinkOrchestrator(runtime_dir, runner=runner, reporter=reporter,
                                    cc_prog=args.cc, verbose=args.verbose)

    if args.print_file_name:
        print(orchestrator.output_path(request))
        return 1 if reporter.has_warnings else 0

    if not obj_path.is_file():
        LoadError("CE4011", path=str(obj_path), reason="No such file or directory").report(reporter)
        return 2

    t0 = time.monotonic()
    try:
        output = orchestrator.link_binary(request)
    except LinkError as e:
        e.report(reporter)
        return 2
    link_time = time.monotonic() - t0

    kind = "library" if args.lib else "native binary"
    if args.verbose:
        print(f"Linking: {len(deps)} crates in {link_time:.2f}s")
    print(f"Success! Wrote {kind}: {output}")

    if reporter.has_warnings:
        return 1
    return 0
