#!/usr/bin/env python3
"""
Copyright 2025 The kmersweep developers
https://github.com/kmersweep/kmersweep

This is the control program of kmersweep.

Multi-level argparse modified from:
https://chase-seibert.github.io/blog/2014/03/21/python-multilevel-argparse.html

This file is part of kmersweep. kmersweep is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by the Free Software Foundation,
either version 3 of the License, or (at your option) any later version. kmersweep is distributed
in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License for more
details. You should have received a copy of the GNU General Public License along with kmersweep.
If not, see <http://www.gnu.org/licenses/>.
"""

import argparse
import sys

from . import settings
from .misc import MyHelpFormatter, bold, red
from .prepare import prepare
from .run import run
from .sweep import sweep
from .version import __version__


class KmerSweep(object):
    ################################################################################################
    ############################################################################## KMERSWEEP SECTION
    def __init__(self):
        description = bold(
            f"kmersweep {__version__}: choose the velvet kmer size that best recovers your targets"
        )
        parser = argparse.ArgumentParser(
            usage="kmersweep command [options]",
            description=description,
            formatter_class=MyHelpFormatter,
            epilog="For help on a particular command: kmersweep command -h",
            add_help=False,
        )

        required_group = parser.add_argument_group("kmersweep commands")
        required_group.add_argument(
            "command",
            help="prepare = Trim adaptors with scythe, quality-trim with sickle and join pairs with"
            " fastq-join | sweep = Assemble prepared reads with velvet over a range of kmer sizes,"
            " BLAST the targets against every assembly and tabulate their recovery | run = prepare"
            " and sweep every sample listed in a configuration file",
        )

        help_group = parser.add_argument_group("Help")
        help_group.add_argument(
            "-h", "--help", action="help", help="Show this help message and exit"
        )
        help_group.add_argument(
            "--version",
            action="version",
            version=f"kmersweep v{__version__}",
            help="Show kmersweep's version number",
        )

        if len(sys.argv) == 1:
            parser.print_help()
            exit(red("\nERROR: Missing command\n"))

        # parse_args defaults to [1:] for args, but you need to
        # exclude the rest of the args too, or validation will fail
        args = parser.parse_args(sys.argv[1:2])
        if not hasattr(self, args.command) or args.command.startswith("_"):
            parser.print_help()
            exit(red(f"\nERROR: Unrecognized command: {sys.argv[1]}\n"))
        # use dispatch pattern to invoke method with same name
        getattr(self, args.command)()

    ################################################################################################
    ################################################################################ PREPARE SECTION
    def prepare(self):
        description = bold(
            "kmersweep: Prepare; trim adaptors, quality-trim and join overlapping read pairs\n"
        )
        parser = argparse.ArgumentParser(
            usage="kmersweep prepare -1 R1 -2 R2 -a ADAPTERS -n NAME [options]",
            description=description,
            formatter_class=MyHelpFormatter,
            epilog="For more information, please see https://github.com/kmersweep/kmersweep",
            add_help=False,
        )

        input_group = parser.add_argument_group("Input")
        input_group.add_argument(
            "-1", "--R1", action="store", type=str, required=True, dest="r1",
            help="FASTQ file with the forward reads",
        )
        input_group.add_argument(
            "-2", "--R2", action="store", type=str, required=True, dest="r2",
            help="FASTQ file with the reverse reads",
        )
        input_group.add_argument(
            "-a", "--adapters", action="store", type=str, required=True, dest="adapters",
            help="FASTA file with the adaptor sequences to trim with scythe",
        )
        input_group.add_argument(
            "-n", "--name", action="store", type=str, required=True, dest="name",
            help="Sample name, used as prefix for every output file",
        )
        self._add_phred_argument(input_group)

        output_group = parser.add_argument_group("Output")
        output_group.add_argument(
            "-o", "--out", action="store", default="./kmersweep_out", type=str, dest="out",
            help="Output directory name, the prepared reads are saved in"
            f" '[Sample_name]{settings.SAMPLE_DIR_SUFFIX}/{settings.SAMPLE_DIRS['PREP']}'",
        )
        output_group.add_argument(
            "--overwrite", action="store_true", dest="overwrite", help="Overwrite previous results"
        )

        self._add_prepare_dependencies(parser)
        self._add_other_arguments(parser, concurrency=False)

        full_command = " ".join(sys.argv)
        args = parser.parse_args(sys.argv[2:])
        prepare(full_command, args)
        exit(1)

    ################################################################################################
    ################################################################################## SWEEP SECTION
    def sweep(self):
        description = bold(
            "kmersweep: Sweep; assemble with velvet over a range of kmer sizes and tabulate how"
            " completely the targets are recovered\n"
        )
        parser = argparse.ArgumentParser(
            usage="kmersweep sweep --R1 R1 --R2 R2 --singles SINGLES -t TARGETS -n NAME [options]",
            description=description,
            formatter_class=MyHelpFormatter,
            epilog="For more information, please see https://github.com/kmersweep/kmersweep",
            add_help=False,
        )

        input_group = parser.add_argument_group("Input")
        input_group.add_argument(
            "-1", "--R1", action="store", type=str, required=True, dest="r1",
            help="FASTQ file with the forward reads of the pairs that could not be joined",
        )
        input_group.add_argument(
            "-2", "--R2", action="store", type=str, required=True, dest="r2",
            help="FASTQ file with the reverse reads of the pairs that could not be joined",
        )
        input_group.add_argument(
            "-s", "--singles", action="store", type=str, required=True, dest="singles",
            help="FASTQ file with the singletons and the joined reads",
        )
        input_group.add_argument(
            "-t", "--targets", "--probes", action="store", type=str, required=True,
            dest="targets", help="FASTA file containing the probes or target regions",
        )
        input_group.add_argument(
            "-n", "--name", action="store", type=str, required=True, dest="name",
            help="Sample name, used as prefix for every output file",
        )

        output_group = parser.add_argument_group("Output")
        output_group.add_argument(
            "-o", "--out", action="store", default="./kmersweep_out", type=str, dest="out",
            help="Output directory name, results are saved in"
            f" '[Sample_name]{settings.SAMPLE_DIR_SUFFIX}'",
        )
        self._add_output_flags(output_group)

        self._add_sweep_arguments(parser)
        self._add_sweep_dependencies(parser)
        self._add_other_arguments(parser, concurrency=True, unit="kmer sizes")

        full_command = " ".join(sys.argv)
        args = parser.parse_args(sys.argv[2:])
        sweep(full_command, args)
        exit(1)

    ################################################################################################
    #################################################################################### RUN SECTION
    def run(self):
        description = bold(
            "kmersweep: Run; prepare the reads and sweep kmer sizes for every sample in a"
            " configuration file\n"
        )
        parser = argparse.ArgumentParser(
            usage="kmersweep run -c CONFIG [options]",
            description=description,
            formatter_class=MyHelpFormatter,
            epilog="For more information, please see https://github.com/kmersweep/kmersweep",
            add_help=False,
        )

        input_group = parser.add_argument_group("Input")
        input_group.add_argument(
            "-c", "--config", action="store", type=str, required=True, dest="config",
            help="Tab-separated file with one sample per line and the columns: R1 FASTQ, R2 FASTQ,"
            " sample name, adaptors FASTA, targets FASTA. Lines starting with '#' are ignored",
        )
        self._add_phred_argument(input_group)

        output_group = parser.add_argument_group("Output")
        output_group.add_argument(
            "-o", "--out", action="store", default="./kmersweep_out", type=str, dest="out",
            help="Output directory name, each sample is saved in"
            f" '[Sample_name]{settings.SAMPLE_DIR_SUFFIX}'",
        )
        self._add_output_flags(output_group)

        self._add_sweep_arguments(parser)
        self._add_prepare_dependencies(parser)
        self._add_sweep_dependencies(parser)
        self._add_other_arguments(parser, concurrency=True, unit="samples")

        full_command = " ".join(sys.argv)
        args = parser.parse_args(sys.argv[2:])
        run(full_command, args)
        exit(1)

    ################################################################################################
    ################################################################### ARGUMENTS SHARED BY COMMANDS
    @staticmethod
    def _add_phred_argument(group):
        group.add_argument(
            "--phred", action="store", default=33, type=int, choices=[33, 64], dest="phred",
            help="Phred offset of the quality scores",
        )

    @staticmethod
    def _add_output_flags(group):
        group.add_argument(
            "--keep_all", action="store_true", dest="keep_all",
            help="Do not delete any intermediate files (velvet graphs, BLAST databases, prepared"
            " reads)",
        )
        group.add_argument(
            "--overwrite", action="store_true", dest="overwrite", help="Overwrite previous results"
        )

    @staticmethod
    def _add_sweep_arguments(parser):
        sweep_group = parser.add_argument_group("kmer sweep")
        sweep_group.add_argument(
            "--from", action="store", default=settings.DEFAULT_FROM_K, type=int, dest="from_k",
            help="Smallest kmer size, must be odd",
        )
        sweep_group.add_argument(
            "--to", action="store", default=settings.DEFAULT_TO_K, type=int, dest="to_k",
            help="Largest kmer size, must be odd. velvet must have been compiled with"
            " MAXKMERLENGTH of at least this value",
        )
        sweep_group.add_argument(
            "--miseq", action="store_true", dest="miseq",
            help="Give the unjoined pairs to velvet as a long paired library, use it for MiSeq"
            " reads over 200bp",
        )
        sweep_group.add_argument(
            "--timeout", action="store", default=0, type=int, dest="timeout",
            help="Maximum seconds for each external program, a kmer size whose assembly or BLAST"
            " search exceeds it is left out of the sweep. 0 means no limit",
        )

    @staticmethod
    def _add_prepare_dependencies(parser):
        deps_group = parser.add_argument_group("Read preparation dependencies")
        deps_group.add_argument(
            "--scythe_path", action="store", default="scythe", type=str, dest="scythe_path",
            help="Path to scythe",
        )
        deps_group.add_argument(
            "--sickle_path", action="store", default="sickle", type=str, dest="sickle_path",
            help="Path to sickle",
        )
        deps_group.add_argument(
            "--fastq_join_path", action="store", default="fastq-join", type=str,
            dest="fastq_join_path", help="Path to fastq-join",
        )

    @staticmethod
    def _add_sweep_dependencies(parser):
        deps_group = parser.add_argument_group("Assembly and search dependencies")
        deps_group.add_argument(
            "--velveth_path", action="store", default="velveth", type=str, dest="velveth_path",
            help="Path to velveth",
        )
        deps_group.add_argument(
            "--velvetg_path", action="store", default="velvetg", type=str, dest="velvetg_path",
            help="Path to velvetg",
        )
        deps_group.add_argument(
            "--makeblastdb_path", action="store", default="makeblastdb", type=str,
            dest="makeblastdb_path", help="Path to makeblastdb",
        )
        deps_group.add_argument(
            "--blastn_path", action="store", default="blastn", type=str, dest="blastn_path",
            help="Path to blastn",
        )

    @staticmethod
    def _add_other_arguments(parser, concurrency=False, unit=""):
        other_group = parser.add_argument_group("Other")
        if concurrency:
            other_group.add_argument(
                "--concurrent", action="store", default="1", type=str, dest="concurrent",
                help=f"Number of {unit} processed simultaneously, 'auto' uses as many as"
                " '--threads' allows",
            )
        other_group.add_argument(
            "--threads", action="store", default="auto", type=str, dest="threads",
            help="Maximum number of CPUs to use, 'auto' uses all the CPUs available",
        )
        other_group.add_argument(
            "--show_less", action="store_true", dest="show_less",
            help="Do not show individual sample or kmer information during the run, the"
            " information is still written to the log",
        )

        help_group = parser.add_argument_group("Help")
        help_group.add_argument(
            "-h", "--help", action="help", help="Show this help message and exit"
        )
        help_group.add_argument(
            "--version", action="version", version=f"kmersweep v{__version__}",
            help="Show kmersweep's version number",
        )


def main():
    KmerSweep()


if __name__ == "__main__":
    main()
