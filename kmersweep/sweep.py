#!/usr/bin/env python3
"""
Copyright 2025 The kmersweep developers
https://github.com/kmersweep/kmersweep

This file is part of kmersweep. kmersweep is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by the Free Software Foundation,
either version 3 of the License, or (at your option) any later version. kmersweep is distributed
in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License for more
details. You should have received a copy of the GNU General Public License along with kmersweep.
If not, see <http://www.gnu.org/licenses/>.
"""

import platform
import shutil
import time
from pathlib import Path

import pandas as pd

from . import log, settings
from .bioformats import BlastTabError, blast_tab_to_results, fasta_seq_lengths, unmatched_results
from .classify import aggregate_sweep_points, best_kmer, classify_targets, format_blast_stats
from .misc import (
    blast_path_version,
    bold,
    dim,
    elapsed_time,
    file_is_empty,
    format_dep_msg,
    make_output_dir,
    python_library_check,
    quit_with_error,
    red,
    remove_files,
    run_command,
    set_concurrency,
    set_threads,
    successful_exit,
    tqdm_collect_run,
    velvet_path_version,
)
from .version import __version__


def sweep(full_command, args):
    kmersweep_start = time.time()
    out_dir, out_dir_msg = make_output_dir(args.out)
    log.logger = log.Log(Path(out_dir, "kmersweep-sweep.log"), stdout_verbosity_level=1)

    mar = 21  # Margin for aligning parameters and values

    ################################################################################################
    ############################################################################### STARTING SECTION
    log.log_section_header("Starting kmersweep: SWEEP", single_newline=False)
    log.log_explanation(
        "Welcome to the kmer sweep step of kmersweep. The reads will be assembled with velvet"
        " using every odd kmer size in the range you provided, then your targets will be searched"
        " with BLAST in every assembly. Instead of choosing the kmer size that yields the longest"
        " contigs, kmersweep counts how many targets are matched by the contigs, by a single"
        " contig, by a single HSP, and how many are nested within a single contig, so you can"
        " choose the kmer size that recovers the most targets the most completely.",
    )
    try:
        kmers = kmer_range(args.from_k, args.to_k)
    except ValueError as e:
        quit_with_error(f"{e}")

    log.log(f"{'kmersweep version':>{mar}}: {bold(f'v{__version__}')}")
    log.log(f"{'Command':>{mar}}: {bold(full_command)}")
    log.log(f"{'OS':>{mar}}: {bold(platform.platform())}")
    log.log(f"{'Host':>{mar}}: {bold(platform.node())}")
    tsv_comment = f"#kmersweep v{__version__}\n#Command: {full_command}\n"
    threads_max, threads_total = set_threads(args.threads)
    log.log(f"{'Max. Threads':>{mar}}: {bold(threads_max)} {dim(f'(out of {threads_total})')}")
    log.log("")

    tools_found = log_sweep_dependencies(args, mar)
    if not tools_found:
        quit_with_error(
            "velvet and BLAST+ are required, please verify you have them installed or provide the"
            " full path to the programs"
        )
    for file_path in [args.r1, args.r2, args.singles, args.targets]:
        if not Path(file_path).is_file():
            quit_with_error(f"The file '{file_path}' does not exist")
    try:
        query_lengths = load_target_lengths(args.targets)
    except ValueError as e:
        quit_with_error(f"{e}")

    concurrent = set_concurrency(args.concurrent, threads_max, len(kmers))
    log.log(f"{'Sample name':>{mar}}: {bold(args.name)}")
    log.log(f"{'Targets':>{mar}}: {bold(args.targets)} {dim(f'({len(query_lengths)} sequences)')}")
    log.log(f"{'Singles and joined':>{mar}}: {bold(args.singles)}")
    log.log(f"{'R1':>{mar}}: {bold(args.r1)}")
    log.log(f"{'R2':>{mar}}: {bold(args.r2)}")
    log.log(f"{'Paired library':>{mar}}: {bold('-longPaired' if args.miseq else '-shortPaired')}")
    log.log(f"{'Kmer sizes':>{mar}}: {bold(len(kmers))} {dim(f'(from {kmers[0]} to {kmers[-1]})')}")
    log.log_number_list(kmers, indent_size=mar + 2)
    log.log(f"{'Concurrent kmers':>{mar}}: {bold(concurrent)}")
    timeout_msg = f"{args.timeout}s" if args.timeout else "none"
    log.log(f"{'Timeout per program':>{mar}}: {bold(timeout_msg)}")
    log.log(f"{'Overwrite files':>{mar}}: {bold(args.overwrite)}")
    log.log(f"{'Keep all files':>{mar}}: {bold(args.keep_all)}")
    log.log("")
    log.log(f"{'Output directory':>{mar}}: {bold(out_dir)}")
    log.log(f"{'':>{mar}}  {dim(out_dir_msg)}")
    log.log("")

    ################################################################################################
    ################################################################################## SWEEP SECTION
    log.log_section_header("Assembling with velvet and Searching Targets with BLAST")
    sample_dir = Path(out_dir, f"{args.name}{settings.SAMPLE_DIR_SUFFIX}")
    kmer_params = sweep_kmer_params(
        args, args.name, sample_dir, Path(args.singles).resolve(), Path(args.r1).resolve(),
        Path(args.r2).resolve(), Path(args.targets).resolve(), query_lengths, kmers, tsv_comment,
    )
    results = tqdm_collect_run(
        sweep_kmer,
        kmer_params,
        f"Sweeping {len(kmers)} kmer sizes",
        "Kmer sweep completed",
        "kmer",
        concurrent,
        args.show_less,
    )
    log.log("")

    ################################################################################################
    ############################################################################## SUMMARY SECTION
    log.log_section_header("Summarizing Target Recovery")
    summary = summarize_sweep(args.name, sample_dir, results, kmers, tsv_comment)
    log_sweep_summary(summary, mar)

    if summary["fatal"]:
        quit_with_error(summary["fatal"])
    if not summary["points"]:
        quit_with_error(f"None of the {len(kmers)} kmer sizes could be processed, check the logs")

    ################################################################################################
    ################################################################################# ENDING SECTION
    successful_exit(
        "kmersweep: SWEEP -> successfully completed"
        f" [{elapsed_time(time.time() - kmersweep_start)}]"
    )


def kmer_range(from_k, to_k):
    """
    Ascending odd kmer sizes between 'from_k' and 'to_k', both included. Both bounds must be odd
    positive integers with 'from_k' <= 'to_k'
    """
    for name, bound in [("--from", from_k), ("--to", to_k)]:
        if isinstance(bound, bool) or not isinstance(bound, int):
            raise ValueError(f"Kmer bound {name} must be an integer, you provided '{bound}'")
        if bound < 1 or bound % 2 != 1:
            raise ValueError(
                f"Kmer bounds (--from and --to) must be odd positive integers, {name} is {bound}"
            )
    if from_k > to_k:
        raise ValueError(f"Kmer bound --from ({from_k}) is larger than --to ({to_k})")
    return list(range(from_k, to_k + 1, 2))


def load_target_lengths(targets):
    """
    Length of every target keyed by name. Raises ValueError when the file has no sequences or when
    some of them are empty, a target without length can't be classified
    """
    query_lengths = fasta_seq_lengths(targets)
    if not query_lengths:
        raise ValueError(f"No sequences were found in the targets file '{targets}'")
    empty = [name for name, length in query_lengths.items() if length == 0]
    if empty:
        raise ValueError(
            f"The targets file '{targets}' has sequences without bases: {', '.join(empty)}"
        )
    return query_lengths


def log_sweep_dependencies(args, mar):
    log.log(f"{'Dependencies':>{mar}}:")
    tools_found = True
    for tool_name, tool_path, path_version in [
        ("velveth", args.velveth_path, velvet_path_version),
        ("velvetg", args.velvetg_path, velvet_path_version),
        ("makeblastdb", args.makeblastdb_path, blast_path_version),
        ("blastn", args.blastn_path, blast_path_version),
    ]:
        _, tool_version, tool_status = path_version(tool_path)
        log.log(format_dep_msg(f"{tool_name:>{mar}}: ", tool_version, tool_status))
        if tool_status != "OK":
            tools_found = False
    log.log("")
    log.log(f"{'Python libraries':>{mar}}:")
    for library in ["numpy", "pandas", "plotly"]:
        _, library_version, library_status = python_library_check(library)
        log.log(format_dep_msg(f"{library:>{mar}}: ", library_version, library_status))
    log.log("")
    return tools_found


def sweep_kmer_params(
    args, sample_name, sample_dir, singles, r1, r2, targets, query_lengths, kmers, tsv_comment
):
    sweep_dir = Path(sample_dir, settings.SAMPLE_DIRS["SWEEP"])
    return [
        (
            args.velveth_path,
            args.velvetg_path,
            args.makeblastdb_path,
            args.blastn_path,
            sample_name,
            sweep_dir,
            kmer,
            singles,
            r1,
            r2,
            targets,
            query_lengths,
            args.miseq,
            args.timeout or None,
            tsv_comment,
            args.keep_all,
            args.overwrite,
        )
        for kmer in kmers
    ]


def velvet_dir_path(sweep_dir, sample_name, kmer):
    return Path(sweep_dir, f"{sample_name}_{kmer}_velvet")


def blast_out_name(targets, sample_name, kmer):
    return f"{Path(targets).name}_blasted_to_{sample_name}_{kmer}.tsv"


def sweep_kmer(
    velveth_path,
    velvetg_path,
    makeblastdb_path,
    blastn_path,
    sample_name,
    sweep_dir,
    kmer,
    singles,
    r1,
    r2,
    targets,
    query_lengths,
    miseq,
    timeout,
    tsv_comment,
    keep_all,
    overwrite,
):
    """
    Assemble the reads with one kmer size, search the targets in the assembly and classify them.
    Failures are returned as a status so the remaining kmer sizes can still be processed, only a
    statistics file that can't be written is "fatal"
    """
    start = time.time()
    velvet_dir = velvet_dir_path(sweep_dir, sample_name, kmer)
    contigs = Path(velvet_dir, settings.VELVET_CONTIGS)
    blast_out = Path(velvet_dir, blast_out_name(targets, sample_name, kmer))
    blast_stats_file = Path(velvet_dir, f"{blast_out.stem}_blastStats.txt")
    point_file = Path(velvet_dir, f"{sample_name}_{kmer}.{settings.SWEEP_FILES['POINT']}")
    result = {
        "sample_name": sample_name,
        "kmer": kmer,
        "status": settings.KMER_STATUS["OK"],
        "fatal": False,
        "stats": None,
        "contigs": f"{contigs}",
    }

    if overwrite is False and point_file.exists():
        previous = read_sweep_point(point_file)
        # a point computed for another set of targets is recomputed
        if previous is not None and previous["targets"] == len(query_lengths):
            result["stats"] = previous
            result["message"] = dim(
                f"'{sample_name}' k={kmer}: SKIPPED (output files already exist)"
            )
            return result

    if velvet_dir.exists():
        shutil.rmtree(velvet_dir, ignore_errors=True)
    velvet_dir.mkdir(parents=True)

    status = velvet_assemble(
        velveth_path, velvetg_path, velvet_dir, kmer, singles, r1, r2, miseq,
        Path(velvet_dir, f"{sample_name}_{kmer}.velvet.log"), timeout,
    )
    if not keep_all:
        remove_files([Path(velvet_dir, f) for f in settings.VELVET_GRAPH_FILES])
    if status != "OK" or not contigs.exists():
        return sweep_kmer_failed(result, "TIMEOUT" if status == "timeout" else "ASM", start)

    if file_is_empty(contigs):
        results = unmatched_results(query_lengths)
        empty_msg = dim(" (no contigs assembled)")
    else:
        status = blast_targets(
            makeblastdb_path, blastn_path, contigs, Path(velvet_dir, f"{sample_name}_{kmer}"),
            targets, blast_out, Path(velvet_dir, f"{sample_name}_{kmer}.blast.log"), timeout,
            keep_all,
        )
        if status != "OK" or not blast_out.exists():
            return sweep_kmer_failed(result, "TIMEOUT" if status == "timeout" else "BLAST", start)
        try:
            results = blast_tab_to_results(blast_out, query_lengths)
        except BlastTabError as e:
            log.log(red(f"'{sample_name}' k={kmer}: {e}"), print_to_screen=False)
            return sweep_kmer_failed(result, "MALFORMED", start)
        empty_msg = ""

    stats = classify_targets(results)
    stats = {"sample_name": sample_name, "kmer": kmer, **stats}
    for file_path, file_text in [
        (blast_stats_file, format_blast_stats(stats)),
        (point_file, format_sweep_point(stats, tsv_comment)),
    ]:
        try:
            with open(file_path, "wt") as stats_out:
                stats_out.write(file_text)
        except OSError as e:
            result["status"] = settings.KMER_STATUS["FATAL"]
            result["fatal"] = f"Statistics file '{file_path}' could not be written ({e.strerror})"
            result["message"] = red(f"'{sample_name}' k={kmer}: FAILED, {result['fatal']}")
            return result

    result["stats"] = stats
    result["message"] = (
        f"'{sample_name}' k={kmer}: {stats['targets_nested_within_contig']}/{stats['targets']}"
        f" targets nested within contigs{empty_msg} [{elapsed_time(time.time() - start)}]"
    )
    return result


def sweep_kmer_failed(result, status_key, start):
    result["status"] = settings.KMER_STATUS[status_key]
    result["message"] = red(
        f"'{result['sample_name']}' k={result['kmer']}: FAILED ({result['status']})"
        f" [{elapsed_time(time.time() - start)}]"
    )
    return result


def velvet_assemble(
    velveth_path, velvetg_path, velvet_dir, kmer, singles, r1, r2, miseq, log_file, timeout
):
    """
    Build the graph with velveth and assemble it with velvetg. The joined reads and singletons are
    given as a short single-end library and the unjoined pairs as a separate paired library, long
    for MiSeq reads over 200bp
    """
    velveth_cmd = [
        velveth_path,
        f"{velvet_dir}",
        f"{kmer}",
        "-short", "-fastq", f"{singles}",
        "-longPaired" if miseq else "-shortPaired", "-separate", "-fastq", f"{r1}", f"{r2}",
    ]
    status = run_command(velveth_cmd, log_file, timeout)
    if status != "OK":
        return status
    velvetg_cmd = [velvetg_path, f"{velvet_dir}"] + settings.VELVETG_OPTIONS
    return run_command(velvetg_cmd, log_file, timeout, append=True)


def blast_targets(
    makeblastdb_path, blastn_path, contigs, db_prefix, targets, blast_out, log_file, timeout,
    keep_all,
):
    """
    Make a nucleotide BLAST database from the contigs and search the targets in it, the output
    lists every target even when it has no hits
    """
    makeblastdb_cmd = [
        makeblastdb_path,
        "-in", f"{contigs}",
        "-dbtype", "nucl",
        "-out", f"{db_prefix}",
    ]
    status = run_command(makeblastdb_cmd, log_file, timeout)
    if status == "OK":
        blastn_cmd = [
            blastn_path,
            "-db", f"{db_prefix}",
            "-query", f"{targets}",
            "-out", f"{blast_out}",
            "-outfmt", f"7 {' '.join(settings.BLAST_TAB_FIELDS)}",
        ]
        status = run_command(blastn_cmd, log_file, timeout, append=True)
    if not keep_all:
        remove_files([Path(f"{db_prefix}{suffix}") for suffix in settings.BLAST_DB_SUFFIXES])
    return status


def format_sweep_point(stats, tsv_comment):
    columns = ["sample_name", "kmer", "targets"] + settings.SWEEP_COUNTS
    return (
        tsv_comment
        + "\t".join(columns) + "\n"
        + "\t".join(f"{stats[col]}" for col in columns) + "\n"
    )


def read_sweep_point(point_file):
    """
    Stats of a kmer size processed in a previous run, as written by `format_sweep_point()`.
    Returns None when the file is incomplete
    """
    with open(point_file, "rt") as point_in:
        lines = [line.strip("\n") for line in point_in if line.strip() and not line.startswith("#")]
    if len(lines) < 2:
        return None
    stats = dict(zip(lines[0].split("\t"), lines[1].split("\t")))
    try:
        for col in ["kmer", "targets"] + settings.SWEEP_COUNTS:
            stats[col] = int(stats[col])
    except (KeyError, ValueError):
        return None
    return stats


def summarize_sweep(sample_name, sample_dir, results, kmers, tsv_comment):
    """
    Aggregate the points of a sample into the sweep table, list the failed kmer sizes and build the
    HTML report. Kmer sizes that failed or weren't launched are left out of the sweep
    """
    sample_dir, _ = make_output_dir(sample_dir)
    points = [r["stats"] for r in results if r["stats"] is not None]
    processed = {r["kmer"] for r in results}
    failures = [
        {"sample_name": sample_name, "kmer": r["kmer"], "status": r["status"]}
        for r in results if r["stats"] is None
    ]
    failures += [
        {"sample_name": sample_name, "kmer": k, "status": "not launched"}
        for k in kmers if k not in processed
    ]
    summary = {
        "sample_name": sample_name,
        "points": points,
        "failures": sorted(failures, key=lambda f: f["kmer"]),
        "fatal": next((r["fatal"] for r in results if r.get("fatal")), False),
        "best_kmer": best_kmer(points),
        "best_contigs": None,
        "stats_tsv": None,
        "failures_tsv": None,
        "report": None,
        "report_msg": "",
    }
    if summary["best_kmer"] is not None:
        best = next(r for r in results if r["kmer"] == summary["best_kmer"])
        summary["best_contigs"] = best["contigs"]

    if points:
        sweep_df = sweep_to_dataframe(sample_name, aggregate_sweep_points(points))
        summary["stats_tsv"] = Path(sample_dir, f"{sample_name}.{settings.SWEEP_FILES['STATS']}")
        write_tsv(sweep_df, summary["stats_tsv"], tsv_comment)
        if all(python_library_check(lib)[0] for lib in ["numpy", "plotly"]):
            from .report import build_sweep_report

            summary["report"], summary["report_msg"] = build_sweep_report(
                sample_dir, summary["stats_tsv"], kmers[0], kmers[-1]
            )
    if summary["failures"]:
        summary["failures_tsv"] = Path(sample_dir, f"{sample_name}.{settings.SWEEP_FILES['FAIL']}")
        write_tsv(pd.DataFrame(summary["failures"]), summary["failures_tsv"], tsv_comment)
    return summary


def sweep_to_dataframe(sample_name, sweep):
    """
    Table with one row per kmer size, with the counts and their percentage of the total targets,
    percentages are missing when there are no targets
    """
    sweep_df = pd.DataFrame(sweep)
    sweep_df.insert(0, "sample_name", sample_name)
    for count in settings.SWEEP_COUNTS:
        sweep_df[f"{count}_pct"] = (
            (sweep_df[count] / sweep_df["targets"] * 100).where(sweep_df["targets"] > 0).round(2)
        )
    return sweep_df


def write_tsv(df, tsv_path, tsv_comment):
    with open(tsv_path, "wt") as tsv_out:
        tsv_out.write(tsv_comment)
        df.to_csv(tsv_out, sep="\t", index=False, na_rep="NA")


def log_sweep_summary(summary, mar):
    if summary["failures"]:
        log.log(f"{bold('WARNING:')} {len(summary['failures'])} kmer size(s) left out of the sweep")
        for failure in summary["failures"]:
            log.log(red(f"{'k=' + str(failure['kmer']):>{mar}}: {failure['status']}"))
        log.log("")
    if summary["stats_tsv"]:
        log.log(f"{'Sweep statistics':>{mar}}: {bold(summary['stats_tsv'])}")
    if summary["failures_tsv"]:
        log.log(f"{'Failed kmer sizes':>{mar}}: {bold(summary['failures_tsv'])}")
    if summary["report"]:
        log.log(f"{'Sweep report':>{mar}}: {bold(summary['report'])}")
        log.log(f"{'':>{mar}}  {dim(summary['report_msg'])}")
    if summary["best_kmer"] is not None:
        log.log(f"{'Best kmer size':>{mar}}: {bold(summary['best_kmer'])}")
        log.log(f"{'Best assembly':>{mar}}: {bold(summary['best_contigs'])}")
    log.log("")
