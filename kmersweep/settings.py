#!/usr/bin/env python3
"""
Copyright 2025 The kmersweep developers
https://github.com/kmersweep/kmersweep

This module contains hard-coded settings for kmersweep

This file is part of kmersweep. kmersweep is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by the Free Software Foundation,
either version 3 of the License, or (at your option) any later version. kmersweep is distributed
in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License for more
details. You should have received a copy of the GNU General Public License along with kmersweep.
If not, see <http://www.gnu.org/licenses/>.
"""

# Default range of kmer sizes to sweep, velvet must be compiled with a MAXKMERLENGTH at least as
# large as the upper bound
DEFAULT_FROM_K = 19
DEFAULT_TO_K = 201

# Quality encodings accepted by scythe (-q) and sickle (-t), keyed by the Phred offset
PHRED_QUALITY_TYPES = {
    33: "sanger",
    64: "illumina",
}

# fastq-join: N-percent maximum difference ('-p' is left at default) and minimum overlap
FASTQ_JOIN_MAX_DIFF_SEPARATOR = " "
FASTQ_JOIN_MIN_OVERLAP = 10

# velvetg options applied to every kmer size
VELVETG_OPTIONS = ["-exp_cov", "auto", "-cov_cutoff", "auto"]

# Large velvet files only needed while building the graph, removed after contigs and BLAST results
# have been produced
VELVET_GRAPH_FILES = ["Graph2", "LastGraph", "PreGraph", "Sequences", "Roadmaps"]

# Name of the assembly velvetg leaves in its working directory
VELVET_CONTIGS = "contigs.fa"

# Suffixes of the files makeblastdb writes for a nucleotide database
BLAST_DB_SUFFIXES = [".nhr", ".nin", ".nsq", ".ndb", ".not", ".ntf", ".nto", ".njs"]

# Columns requested from blastn with '-outfmt 7', the commented tabular output lists every query,
# including those without hits
BLAST_TAB_FIELDS = [
    "qseqid",
    "sseqid",
    "qlen",
    "length",
    "pident",
    "qstart",
    "qend",
    "sstart",
    "send",
    "evalue",
    "bitscore",
]

# A target with a single hit and a single HSP is considered nested within the contig when the HSP
# covers more than this fraction of the target's length and touches neither subject coordinate 1
NESTED_MIN_COVERAGE = 0.98

# Counts produced by the classifier, in order of increasing stringency
SWEEP_COUNTS = [
    "targets_with_hits",
    "targets_with_one_hit",
    "targets_with_one_hsp",
    "targets_nested_within_contig",
]

# Plot titles for each of the counts in the HTML report
SWEEP_COUNT_TITLES = {
    "targets_with_hits": "Targets with matching contigs",
    "targets_with_one_hit": "Targets with ONE matching contig",
    "targets_with_one_hsp": "Targets with ONE matching HSP",
    "targets_nested_within_contig": "Targets WITHIN a contig",
}

# Status of a kmer value after the sweep
KMER_STATUS = {
    "OK": "OK",
    "ASM": "assembly failed",
    "BLAST": "alignment failed",
    "MALFORMED": "malformed BLAST output",
    "TIMEOUT": "timeout",
    "FATAL": "statistics not written",
}

# Output subdirectories inside every sample directory
SAMPLE_DIRS = {
    "PREP": "00_prepared_reads",
    "SWEEP": "01_kmer_sweep",
}

# Suffix for the directory created for each sample
SAMPLE_DIR_SUFFIX = "__kmersweep"

# Filenames of tables summarizing the sweep
SWEEP_FILES = {
    "POINT": "sweep_point.tsv",
    "STATS": "sweep_stats.tsv",
    "FAIL": "sweep_failures.tsv",
    "HTML": "sweep_report.html",
    "ALL": "kmersweep_sweep_stats.tsv",
}
