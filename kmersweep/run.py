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
import time
from pathlib import Path

import pandas as pd

from . import log, settings
from .log import remove_formatting
from .misc import (
    bold,
    dim,
    elapsed_time,
    fastq_join_path_version,
    format_dep_msg,
    make_output_dir,
    python_library_check,
    quit_with_error,
    red,
    remove_files,
    scythe_path_version,
    set_concurrency,
    set_threads,
    sickle_path_version,
    successful_exit,
    tqdm_collect_run,
)
from .prepare import phred_to_quality_type, prepare_reads
from .sweep import (
    kmer_range,
    load_target_lengths,
    log_sweep_dependencies,
    summarize_sweep,
    sweep_kmer,
    sweep_kmer_params,
    write_tsv,
)
from .version import __version__


def run(full_command, args):
    kmersweep_start = time.time()
    out_dir, out_dir_msg = make_output_dir(args.out)
    log.logger = log.Log(Path(out_dir, "kmersweep-run.log"), stdout_verbosity_level=1)

    mar = 21  # Margin for aligning parameters and values

    ################################################################################################
    ############################################################################### STARTING SECTION
    log.log_section_header("Starting kmersweep: RUN", single_newline=False)
    log.log_explanation(
        "Welcome to kmersweep. Every sample listed in the configuration file will have its reads"
        " prepared (scythe, sickle and fastq-join) and then assembled with velvet using every odd"
        " kmer size in the range you provided. Targets are searched in every assembly with BLAST"
        " and classified according to how completely they were recovered. Samples are processed"
        " simultaneously and the summaries are combined once all of them have finished.",
    )
    try:
        kmers = kmer_range(args.from_k, args.to_k)
        samples = parse_config(args.config)
    except (ValueError, OSError) as e:
        quit_with_error(f"{e}")
    quality_type = phred_to_quality_type(args.phred)

    log.log(f"{'kmersweep version':>{mar}}: {bold(f'v{__version__}')}")
    log.log(f"{'Command':>{mar}}: {bold(full_command)}")
    log.log(f"{'OS':>{mar}}: {bold(platform.platform())}")
    log.log(f"{'Host':>{mar}}: {bold(platform.node())}")
    tsv_comment = f"#kmersweep v{__version__}\n#Command: {full_command}\n"
    threads_max, threads_total = set_threads(args.threads)
    log.log(f"{'Max. Threads':>{mar}}: {bold(threads_max)} {dim(f'(out of {threads_total})')}")
    log.log("")

    prep_tools_found = True
    log.log(f"{'Dependencies':>{mar}}:")
    for tool_name, tool_path, path_version in [
        ("scythe", args.scythe_path, scythe_path_version),
        ("sickle", args.sickle_path, sickle_path_version),
        ("fastq-join", args.fastq_join_path, fastq_join_path_version),
    ]:
        _, tool_version, tool_status = path_version(tool_path)
        log.log(format_dep_msg(f"{tool_name:>{mar}}: ", tool_version, tool_status))
        if tool_status != "OK":
            prep_tools_found = False
    if not log_sweep_dependencies(args, mar) or not prep_tools_found:
        quit_with_error(
            "scythe, sickle, fastq-join, velvet and BLAST+ are required, please verify you have"
            " them installed or provide the full path to the programs"
        )

    log.log(f"{'Checking input files':>{mar}}:")
    missing = check_config_files(samples)
    if missing:
        quit_with_error(f"Stopping because the following files do not exist: {', '.join(missing)}")
    invalid_targets = check_config_targets(samples)
    if invalid_targets:
        quit_with_error("\n".join(invalid_targets))
    log.log(f"{'':>{mar}}  {dim('All the files listed in the configuration file exist')}")
    log.log("")

    concurrent = set_concurrency(args.concurrent, threads_max, len(samples))
    log.log(f"{'Configuration file':>{mar}}: {bold(args.config)}")
    log.log(f"{'Samples to process':>{mar}}: {bold(len(samples))}")
    log.log(f"{'Concurrent samples':>{mar}}: {bold(concurrent)}")
    log.log(f"{'Quality encoding':>{mar}}: {bold(f'phred{args.phred}')} {dim(f'({quality_type})')}")
    log.log(f"{'Paired library':>{mar}}: {bold('-longPaired' if args.miseq else '-shortPaired')}")
    log.log(f"{'Kmer sizes':>{mar}}: {bold(len(kmers))} {dim(f'(from {kmers[0]} to {kmers[-1]})')}")
    log.log_number_list(kmers, indent_size=mar + 2)
    timeout_msg = f"{args.timeout}s" if args.timeout else "none"
    log.log(f"{'Timeout per program':>{mar}}: {bold(timeout_msg)}")
    log.log(f"{'Overwrite files':>{mar}}: {bold(args.overwrite)}")
    log.log(f"{'Keep all files':>{mar}}: {bold(args.keep_all)}")
    log.log("")
    log.log(f"{'Output directory':>{mar}}: {bold(out_dir)}")
    log.log(f"{'':>{mar}}  {dim(out_dir_msg)}")
    sample_dir_msg = (
        f"A directory [Sample_name]{settings.SAMPLE_DIR_SUFFIX} will be created per sample"
    )
    log.log(f"{'':>{mar}}  {dim(sample_dir_msg)}")
    log.log("")

    ################################################################################################
    ################################################################################## RUN SECTION
    log.log_section_header("Preparing Reads and Sweeping kmer Sizes per Sample")
    run_params = [
        (args, sample, out_dir, kmers, quality_type, tsv_comment)
        for sample in samples
    ]
    summaries = tqdm_collect_run(
        run_sample,
        run_params,
        "Processing samples",
        "Samples processed",
        "sample",
        concurrent,
        args.show_less,
    )
    log.log("")

    ################################################################################################
    ############################################################################## SUMMARY SECTION
    log.log_section_header("Summarizing Target Recovery across Samples")
    for summary in sorted(summaries, key=lambda s: s["sample_name"]):
        best = summary.get("best_kmer")
        best_msg = f"best kmer size = {best}" if best is not None else red("no kmer size processed")
        log.log(f"{summary['sample_name']:>{mar}}: {bold(best_msg)}")
        if summary.get("failures"):
            failures_msg = f"{len(summary['failures'])} kmer size(s) left out"
            log.log(f"{'':>{mar}}  {dim(failures_msg)}")
    log.log("")

    all_stats_tsv = collect_sweep_stats(out_dir, summaries, tsv_comment)
    if all_stats_tsv:
        log.log(f"{'Sweep statistics':>{mar}}: {bold(all_stats_tsv)}")
        if all(python_library_check(lib)[0] for lib in ["numpy", "plotly"]):
            from .report import build_sweep_report

            html_report, html_msg = build_sweep_report(
                out_dir, all_stats_tsv, kmers[0], kmers[-1],
                report_name=f"kmersweep_{settings.SWEEP_FILES['HTML']}",
            )
            log.log(f"{'Sweep report':>{mar}}: {bold(html_report)}")
            log.log(f"{'':>{mar}}  {dim(html_msg)}")
        log.log("")
    else:
        log.log(red("Skipping summarization step... (no sweep statistics were produced)"))
        log.log("")

    fatal = [summary["fatal"] for summary in summaries if summary.get("fatal")]
    if fatal:
        quit_with_error("\n".join(fatal))

    ################################################################################################
    ################################################################################# ENDING SECTION
    successful_exit(
        "kmersweep: RUN -> successfully completed"
        f" [{elapsed_time(time.time() - kmersweep_start)}]"
    )


def parse_config(config_path):
    """
    Read the tab-separated configuration file, one sample per line with the columns: R1 file, R2
    file, sample name, adaptors FASTA and targets FASTA. Blank lines and lines starting with '#' are
    ignored. Returns a list of dictionaries, raises ValueError for malformed lines or repeated
    sample names
    """
    columns = ["r1", "r2", "name", "adapters", "targets"]
    samples = []
    with open(config_path, "rt") as config_in:
        for line_num, line in enumerate(config_in, start=1):
            if line.startswith("#") or not line.strip():
                continue
            fields = [field.strip() for field in line.rstrip("\n").split("\t")]
            if len(fields) != len(columns) or not all(fields):
                raise ValueError(
                    f"Line {line_num} of '{config_path}' must have {len(columns)} tab-separated"
                    f" columns ({', '.join(columns)})"
                )
            samples.append(dict(zip(columns, fields)))
    if not samples:
        raise ValueError(f"No samples were found in '{config_path}'")
    names = [sample["name"] for sample in samples]
    repeated = sorted({name for name in names if names.count(name) > 1})
    if repeated:
        raise ValueError(f"Sample names must be unique, repeated: {', '.join(repeated)}")
    return samples


def check_config_files(samples):
    missing = []
    for sample in samples:
        for key in ["r1", "r2", "adapters", "targets"]:
            if not Path(sample[key]).is_file():
                missing.append(sample[key])
    return missing


def check_config_targets(samples):
    """
    Errors found in the targets files of the samples, each file is read only once
    """
    errors = []
    for targets in dict.fromkeys(sample["targets"] for sample in samples):
        try:
            load_target_lengths(targets)
        except ValueError as e:
            errors.append(f"{e}")
    return errors


def run_sample(args, sample, out_dir, kmers, quality_type, tsv_comment):
    """
    Prepare the reads of a sample and sweep every kmer size, the kmer sizes of a sample are
    processed one after the other. Runs in its own process and shares nothing with the other
    samples, everything it produces is written inside the sample's directory
    """
    start = time.time()
    sample_name = sample["name"]
    sample_dir = Path(out_dir, f"{sample_name}{settings.SAMPLE_DIR_SUFFIX}")
    summary = {"sample_name": sample_name, "fatal": False, "best_kmer": None, "failures": []}

    targets = Path(sample["targets"]).resolve()
    try:
        query_lengths = load_target_lengths(targets)
    except ValueError as e:
        summary["message"] = red(f"'{sample_name}': FAILED ({e})")
        return summary

    prep = prepare_reads(
        args.scythe_path,
        args.sickle_path,
        args.fastq_join_path,
        Path(sample["r1"]).resolve(),
        Path(sample["r2"]).resolve(),
        Path(sample["adapters"]).resolve(),
        sample_name,
        Path(sample_dir, settings.SAMPLE_DIRS["PREP"]),
        quality_type,
        args.timeout or None,
        args.overwrite,
    )
    if prep["status"] != "OK":
        summary["message"] = prep["message"]
        return summary

    kmer_params = sweep_kmer_params(
        args, sample_name, sample_dir, prep["reads"]["singles"], prep["reads"]["r1"],
        prep["reads"]["r2"], targets, query_lengths, kmers, tsv_comment,
    )
    results = []
    with open(Path(sample_dir, f"{sample_name}.kmersweep.log"), "at") as sample_log:
        sample_log.write(f"{remove_formatting(prep['message'])}\n")
        for params in kmer_params:
            result = sweep_kmer(*params)
            results.append(result)
            sample_log.write(f"{remove_formatting(result['message'])}\n")
            sample_log.flush()
            if result["fatal"]:
                break

    summary.update(summarize_sweep(sample_name, sample_dir, results, kmers, tsv_comment))
    if not args.keep_all:
        remove_files(prep["reads"].values())

    if summary["fatal"]:
        summary["message"] = red(f"'{sample_name}': STOPPED, {summary['fatal']}")
    elif summary["best_kmer"] is None:
        summary["message"] = red(
            f"'{sample_name}': FAILED (none of the {len(kmers)} kmer sizes could be processed)"
        )
    else:
        summary["message"] = (
            f"'{sample_name}': {len(summary['points'])}/{len(kmers)} kmer sizes swept, best kmer"
            f" size = {summary['best_kmer']} [{elapsed_time(time.time() - start)}]"
        )
    return summary


def collect_sweep_stats(out_dir, summaries, tsv_comment):
    """
    Combine the sweep tables of all the samples into a single table
    """
    stats_tsvs = sorted(
        [summary["stats_tsv"] for summary in summaries if summary.get("stats_tsv")],
        key=lambda tsv: Path(tsv).name,
    )
    if not stats_tsvs:
        return None
    all_stats = pd.concat(
        [pd.read_table(tsv, comment="#") for tsv in stats_tsvs], ignore_index=True
    )
    all_stats_tsv = Path(out_dir, settings.SWEEP_FILES["ALL"])
    write_tsv(all_stats, all_stats_tsv, tsv_comment)
    return all_stats_tsv
