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

from . import log, settings
from .misc import (
    bold,
    dim,
    elapsed_time,
    fastq_join_path_version,
    format_dep_msg,
    make_output_dir,
    quit_with_error,
    red,
    remove_files,
    run_command,
    scythe_path_version,
    sickle_path_version,
    successful_exit,
    tqdm_serial_run,
)
from .version import __version__


def prepare(full_command, args):
    kmersweep_start = time.time()
    out_dir, out_dir_msg = make_output_dir(args.out)
    log.logger = log.Log(Path(out_dir, "kmersweep-prepare.log"), stdout_verbosity_level=1)

    mar = 21  # Margin for aligning parameters and values

    ################################################################################################
    ############################################################################### STARTING SECTION
    log.log_section_header("Starting kmersweep: PREPARE", single_newline=False)
    log.log_explanation(
        "Welcome to the read preparation step of kmersweep. Adaptors will be trimmed from each"
        " read file with scythe, the trimmed pairs will be quality-trimmed with sickle and the"
        " overlapping pairs will be merged with fastq-join. Merged reads and sickle's singletons"
        " are concatenated into a single file of unpaired reads, ready for the kmer sweep with"
        " velvet.",
    )
    log.log(f"{'kmersweep version':>{mar}}: {bold(f'v{__version__}')}")
    log.log(f"{'Command':>{mar}}: {bold(full_command)}")
    log.log(f"{'OS':>{mar}}: {bold(platform.platform())}")
    log.log(f"{'Host':>{mar}}: {bold(platform.node())}")
    log.log("")

    log.log(f"{'Dependencies':>{mar}}:")
    _, scythe_version, scythe_status = scythe_path_version(args.scythe_path)
    log.log(format_dep_msg(f"{'scythe':>{mar}}: ", scythe_version, scythe_status))
    _, sickle_version, sickle_status = sickle_path_version(args.sickle_path)
    log.log(format_dep_msg(f"{'sickle':>{mar}}: ", sickle_version, sickle_status))
    _, fqj_version, fqj_status = fastq_join_path_version(args.fastq_join_path)
    log.log(format_dep_msg(f"{'fastq-join':>{mar}}: ", fqj_version, fqj_status))
    log.log("")

    for tool_name, tool_status in [
        ("scythe", scythe_status), ("sickle", sickle_status), ("fastq-join", fqj_status)
    ]:
        if tool_status == "not found":
            quit_with_error(
                f"{tool_name} could not be found, please verify you have it installed or provide"
                " the full path to the program"
            )
    check_prepare_inputs(args.r1, args.r2, args.adapters)
    quality_type = phred_to_quality_type(args.phred)

    log.log(f"{'Sample name':>{mar}}: {bold(args.name)}")
    log.log(f"{'R1':>{mar}}: {bold(args.r1)}")
    log.log(f"{'R2':>{mar}}: {bold(args.r2)}")
    log.log(f"{'Adaptors':>{mar}}: {bold(args.adapters)}")
    log.log(f"{'Quality encoding':>{mar}}: {bold(f'phred{args.phred}')} {dim(f'({quality_type})')}")
    timeout_msg = f"{args.timeout}s" if args.timeout else "none"
    log.log(f"{'Timeout per program':>{mar}}: {bold(timeout_msg)}")
    log.log(f"{'Overwrite files':>{mar}}: {bold(args.overwrite)}")
    log.log("")
    log.log(f"{'Output directory':>{mar}}: {bold(out_dir)}")
    log.log(f"{'':>{mar}}  {dim(out_dir_msg)}")
    log.log("")

    ################################################################################################
    ######################################################################### PREPARATION SECTION
    log.log_section_header("Trimming, Filtering and Joining Reads")
    sample_dir = Path(out_dir, f"{args.name}{settings.SAMPLE_DIR_SUFFIX}")
    prep_dir = Path(sample_dir, settings.SAMPLE_DIRS["PREP"])
    prepare_params = [(
        args.scythe_path,
        args.sickle_path,
        args.fastq_join_path,
        Path(args.r1).resolve(),
        Path(args.r2).resolve(),
        Path(args.adapters).resolve(),
        args.name,
        prep_dir,
        quality_type,
        args.timeout or None,
        args.overwrite,
    )]
    tqdm_serial_run(
        prepare_reads_message,
        prepare_params,
        "Preparing reads",
        "Read preparation completed",
        "sample",
        args.show_less,
    )
    log.log("")

    prepared = prepared_reads_paths(prep_dir, args.name)
    if not all(prepared[reads].exists() for reads in prepared):
        quit_with_error(
            f"The reads of '{args.name}' could not be prepared, check the logs in {prep_dir}"
        )
    log.log(f"{'Singles and joined':>{mar}}: {bold(prepared['singles'])}")
    log.log(f"{'Unjoined R1':>{mar}}: {bold(prepared['r1'])}")
    log.log(f"{'Unjoined R2':>{mar}}: {bold(prepared['r2'])}")
    log.log("")

    ################################################################################################
    ################################################################################# ENDING SECTION
    successful_exit(
        "kmersweep: PREPARE -> successfully completed"
        f" [{elapsed_time(time.time() - kmersweep_start)}]"
    )


def check_prepare_inputs(r1, r2, adapters):
    for file_path in [r1, r2, adapters]:
        if not Path(file_path).is_file():
            quit_with_error(f"The file '{file_path}' does not exist")


def phred_to_quality_type(phred):
    if phred not in settings.PHRED_QUALITY_TYPES:
        quit_with_error(
            f"Invalid value for '--phred' ({phred}), accepted values are:"
            f" {', '.join(str(p) for p in settings.PHRED_QUALITY_TYPES)}"
        )
    return settings.PHRED_QUALITY_TYPES[phred]


def prepared_reads_paths(prep_dir, sample_name):
    """
    Files produced by `prepare_reads()` that are used as input for velvet
    """
    return {
        "singles": Path(prep_dir, f"{sample_name}.singles_and_joined.clean.fastq"),
        "r1": Path(prep_dir, f"{sample_name}.fqj.un1.fastq"),
        "r2": Path(prep_dir, f"{sample_name}.fqj.un2.fastq"),
    }


def prepare_reads_message(*params):
    return prepare_reads(*params)["message"]


def prepare_reads(
    scythe_path,
    sickle_path,
    fastq_join_path,
    r1,
    r2,
    adapters,
    sample_name,
    prep_dir,
    quality_type,
    timeout,
    overwrite,
):
    """
    Trim adaptors (scythe), quality-trim (sickle) and join overlapping pairs (fastq-join) for one
    sample. Every intermediate file is removed once the next program has consumed it. Returns a
    dictionary with the "status", a "message" and the prepared "reads" (see
    `prepared_reads_paths()`)
    """
    start = time.time()
    prep_dir, _ = make_output_dir(prep_dir)
    prepared = prepared_reads_paths(prep_dir, sample_name)
    result = {"sample_name": sample_name, "status": "OK", "reads": prepared}

    if overwrite is False and all(prepared[reads].exists() for reads in prepared):
        result["message"] = dim(f"'{sample_name}': SKIPPED (prepared reads already exist)")
        return result

    scythe_r1 = Path(prep_dir, f"{sample_name}.R1.scythe")
    scythe_r2 = Path(prep_dir, f"{sample_name}.R2.scythe")
    for in_fastq, out_fastq, read in [(r1, scythe_r1, "R1"), (r2, scythe_r2, "R2")]:
        status = scythe_trim_adaptors(
            scythe_path, adapters, in_fastq, out_fastq, quality_type,
            Path(prep_dir, f"{sample_name}.{read}.scythe.log"), timeout,
        )
        if status != "OK":
            remove_files([scythe_r1, scythe_r2])
            return prepare_failed(result, f"adaptor trimming of {read} {status}")

    sickle_r1 = Path(prep_dir, f"{sample_name}.R1.sickle")
    sickle_r2 = Path(prep_dir, f"{sample_name}.R2.sickle")
    sickle_singles = Path(prep_dir, f"{sample_name}.singles.sickle")
    status = sickle_filter_quality(
        sickle_path, scythe_r1, scythe_r2, sickle_r1, sickle_r2, sickle_singles, quality_type,
        Path(prep_dir, f"{sample_name}.sickle.log"), timeout,
    )
    remove_files([scythe_r1, scythe_r2])
    if status != "OK":
        remove_files([sickle_r1, sickle_r2, sickle_singles])
        return prepare_failed(result, f"quality trimming {status}")

    joined = Path(prep_dir, f"{sample_name}.fqj.join.fastq")
    status = fastq_join_reads(
        fastq_join_path, sickle_r1, sickle_r2, Path(prep_dir, f"{sample_name}.fqj.%.fastq"),
        Path(prep_dir, f"{sample_name}.fastq-join.log"), timeout,
    )
    remove_files([sickle_r1, sickle_r2])
    if status != "OK" or not all(f.exists() for f in [joined, prepared["r1"], prepared["r2"]]):
        remove_files([sickle_singles, joined, prepared["r1"], prepared["r2"]])
        return prepare_failed(result, f"read joining {status if status != 'OK' else 'incomplete'}")

    concatenate_files([joined, sickle_singles], prepared["singles"])
    remove_files([joined, sickle_singles])

    result["message"] = f"'{sample_name}': reads prepared [{elapsed_time(time.time() - start)}]"
    return result


def prepare_failed(result, reason):
    result["status"] = "failed"
    result["message"] = red(f"'{result['sample_name']}': FAILED read preparation ({reason})")
    return result


def scythe_trim_adaptors(
    scythe_path, adapters, in_fastq, out_fastq, quality_type, log_file, timeout
):
    """
    Trims 3' adaptor contamination from a single FASTQ file with scythe
    """
    scythe_cmd = [
        scythe_path,
        "-a", f"{adapters}",
        "-q", quality_type,
        "-o", f"{out_fastq}",
        f"{in_fastq}",
    ]
    return run_command(scythe_cmd, log_file, timeout)


def sickle_filter_quality(
    sickle_path, in_r1, in_r2, out_r1, out_r2, out_singles, quality_type, log_file, timeout
):
    """
    Quality-trims a pair of FASTQ files with sickle, reads whose mate was discarded are written to
    'out_singles'
    """
    sickle_cmd = [
        sickle_path, "pe",
        "-f", f"{in_r1}",
        "-r", f"{in_r2}",
        "-t", quality_type,
        "-o", f"{out_r1}",
        "-p", f"{out_r2}",
        "-s", f"{out_singles}",
    ]
    return run_command(sickle_cmd, log_file, timeout)


def fastq_join_reads(fastq_join_path, in_r1, in_r2, out_template, log_file, timeout):
    """
    Joins overlapping pairs with fastq-join, the '%' in 'out_template' is replaced by 'join', 'un1'
    and 'un2' for the joined reads and for the pairs that could not be joined
    """
    fastq_join_cmd = [
        fastq_join_path,
        "-v", settings.FASTQ_JOIN_MAX_DIFF_SEPARATOR,
        "-m", f"{settings.FASTQ_JOIN_MIN_OVERLAP}",
        f"{in_r1}",
        f"{in_r2}",
        "-o", f"{out_template}",
    ]
    return run_command(fastq_join_cmd, log_file, timeout)


def concatenate_files(in_files, out_file):
    with open(out_file, "wb") as out:
        for in_file in in_files:
            with open(in_file, "rb") as fin:
                shutil.copyfileobj(fin, out)
