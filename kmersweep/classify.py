#!/usr/bin/env python3
"""
Copyright 2025 The kmersweep developers
https://github.com/kmersweep/kmersweep

Classification of targets according to how completely they were recovered by an assembly, and
aggregation of the counts across the swept kmer sizes.

Recovery is judged on a ladder of increasing stringency: a target with any matching contig, a
target matching exactly one contig, a target matching one contig with a single HSP, and finally a
target whose single HSP spans nearly its whole length without touching the first base of the
contig (nested within the contig). Targets matching several contigs, or one contig through several
HSPs, point to a fragmented assembly at that kmer size.

This file is part of kmersweep. kmersweep is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by the Free Software Foundation,
either version 3 of the License, or (at your option) any later version. kmersweep is distributed
in the hope that it will be useful, but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the GNU General Public License for more
details. You should have received a copy of the GNU General Public License along with kmersweep.
If not, see <http://www.gnu.org/licenses/>.
"""

from . import settings


def classify_targets(results, min_coverage=settings.NESTED_MIN_COVERAGE):
    """
    Count targets in each recovery class from the list of BLAST results of a single assembly (see
    `bioformats.blast_tab_to_results()`). Returns a dictionary with the total number of targets
    under "targets" and one count per name in `settings.SWEEP_COUNTS`
    """
    stats = {"targets": 0}
    for count in settings.SWEEP_COUNTS:
        stats[count] = 0

    for result in results:
        if not result["query_length"] or result["query_length"] <= 0:
            raise ValueError(
                f"query '{result['query']}' has an invalid length: {result['query_length']}"
            )
        stats["targets"] += 1
        hits = result["hits"]
        if len(hits) == 0:
            continue
        stats["targets_with_hits"] += 1
        if len(hits) != 1:
            continue
        stats["targets_with_one_hit"] += 1
        if len(hits[0]["hsps"]) != 1:
            continue
        stats["targets_with_one_hsp"] += 1
        hsp = hits[0]["hsps"][0]
        # HSPs touching the first base of the contig are never nested
        if (hsp["aln_length"] / result["query_length"] > min_coverage
                and hsp["s_start"] != 1
                and hsp["s_end"] != 1):
            stats["targets_nested_within_contig"] += 1

    return stats


def stats_percentages(stats):
    """
    Percentage of the total targets for each count, None for all of them when there are no targets
    """
    if stats["targets"] == 0:
        return {count: None for count in settings.SWEEP_COUNTS}
    return {count: stats[count] / stats["targets"] * 100 for count in settings.SWEEP_COUNTS}


def format_pct(pct):
    return "n/a" if pct is None else f"{pct:.2f}"


def format_blast_stats(stats):
    """
    Human-readable summary of the classification of a single assembly
    """
    pct = stats_percentages(stats)
    return (
        f"Number of target regions: {stats['targets']}.\n"
        f"Number of target regions with hits: {stats['targets_with_hits']}."
        f" ({format_pct(pct['targets_with_hits'])}% of total)\n"
        f"Number of target regions with ONE hit: {stats['targets_with_one_hit']}"
        f" ({format_pct(pct['targets_with_one_hit'])}% of total)\n"
        f"Number of target regions with ONE HSP: {stats['targets_with_one_hsp']}"
        f" ({format_pct(pct['targets_with_one_hsp'])}% of total)\n"
        "Number of targets with at least"
        f" {settings.NESTED_MIN_COVERAGE * 100:.0f}% of their length within a contig:"
        f" {stats['targets_nested_within_contig']}"
        f" ({format_pct(pct['targets_nested_within_contig'])}% of total)\n"
    )


def aggregate_sweep_points(points):
    """
    Turn a list of sweep points (dictionaries with the "kmer", "targets" and the classification
    counts) into parallel lists sorted by kmer size, ready for tables and plots
    """
    points = sorted(points, key=lambda p: p["kmer"])
    kmers = [p["kmer"] for p in points]
    if len(set(kmers)) != len(kmers):
        raise ValueError(f"duplicated kmer sizes in sweep: {kmers}")
    sweep = {"kmer": kmers, "targets": [p["targets"] for p in points]}
    for count in settings.SWEEP_COUNTS:
        sweep[count] = [p[count] for p in points]
    return sweep


def best_kmer(points):
    """
    Kmer size with the most targets nested within contigs, ties are broken by the less stringent
    counts in turn and finally by the smallest kmer size. Returns None for an empty sweep
    """
    if not points:
        return None
    ranking = sorted(
        points,
        key=lambda p: tuple(-p[count] for count in reversed(settings.SWEEP_COUNTS)) + (p["kmer"],),
    )
    return ranking[0]["kmer"]
