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

import gzip
import re
from pathlib import Path

from . import settings


class BlastTabError(ValueError):
    """
    Raised when a BLAST commented tabular file is truncated or doesn't have the expected columns
    """


def fasta_to_dict(fasta_path):
    """
    Turns a FASTA file given with `fasta_path` into a dictionary. For example, for the sequence:
    ```text
    >target_0017 exon 3 of gene X
    ATATTGATATTTCATAATAATAGTTTTTGAACTAAAAAGAAATTTTTCCTCCAATTATGTGGG
    ```
    Returns the dictionary:
    ```
    {'target_0017' : {
        'description': 'exon 3 of gene X',
        'sequence': 'ATATTGATATTTCATAATAATAGTTTTTGAACTAAAAAGAAATTTTTCCTCCAAT...'
    }}
    ```
    """
    opener = gzip.open if f"{fasta_path}".endswith(".gz") else open
    fasta_out = {}
    with opener(fasta_path, "rt") as fasta_in:
        seq = []
        name = ""
        desc = ""
        for line in fasta_in:
            line = line.strip("\n").strip()
            if not line:
                continue
            if line.startswith(">"):
                if name:
                    fasta_out[name] = {"description": desc, "sequence": "".join(seq)}
                    seq = []
                header = line[1:].split(maxsplit=1)
                name = header[0] if header else ""
                desc = header[1] if len(header) > 1 else ""
            else:
                seq.append(line)
        if name:
            fasta_out[name] = {"description": desc, "sequence": "".join(seq)}
    return fasta_out


def fasta_seq_lengths(fasta_path):
    """
    Length of every sequence in a FASTA file, keyed by the first word of its header, the same
    identifier BLAST reports for a query
    """
    return {name: len(rec["sequence"]) for name, rec in fasta_to_dict(fasta_path).items()}


def parse_blast_tab_record(blast_line):
    """
    Parse a data line of blastn '-outfmt 7' with the columns in `settings.BLAST_TAB_FIELDS`.
    Subject coordinates are reported from the lower to the higher position, with the strand
    recorded apart, so 's_start' is always the first position of the contig covered by the HSP
    """
    record = blast_line.rstrip("\n").split("\t")
    if len(record) != len(settings.BLAST_TAB_FIELDS):
        raise BlastTabError(
            f"expected {len(settings.BLAST_TAB_FIELDS)} columns but found {len(record)}:"
            f" '{blast_line.strip()}'"
        )
    fields = dict(zip(settings.BLAST_TAB_FIELDS, record))
    try:
        sstart, send = int(fields["sstart"]), int(fields["send"])
        hsp = {
            "query": fields["qseqid"],
            "subject": fields["sseqid"],
            "query_length": int(fields["qlen"]),
            "aln_length": int(fields["length"]),
            "pident": float(fields["pident"]),
            "q_start": int(fields["qstart"]),
            "q_end": int(fields["qend"]),
            "s_start": min(sstart, send),
            "s_end": max(sstart, send),
            "s_strand": "+" if sstart <= send else "-",
            "evalue": float(fields["evalue"]),
            "bitscore": float(fields["bitscore"]),
        }
    except ValueError:
        raise BlastTabError(f"malformed BLAST record: '{blast_line.strip()}'")
    return hsp


def blast_tab_to_results(blast_tab_path, query_lengths=None):
    """
    Read a blastn commented tabular file ('-outfmt 7') and return a list with one dictionary per
    query, in the order of the file:
    ```
    {'query': 'target_0017',
     'query_length': 120,
     'hits': [{'subject': 'NODE_3_length_812_cov_9.4', 'hsps': [hsp, ...]}, ...]}
    ```
    where each 'hsp' is a dictionary from `parse_blast_tab_record()`. Queries without hits are
    included with an empty 'hits' list; their length is taken from 'query_lengths' (a dictionary
    from `fasta_seq_lengths()`) because BLAST doesn't print it for them. Raises `BlastTabError` if
    the file is truncated or malformed
    """
    results = []
    current = None
    hits_expected = None
    hsps_found = 0
    queries_processed = None

    def close_query():
        if current is None:
            return
        if hits_expected is not None and hits_expected != hsps_found:
            raise BlastTabError(
                f"query '{current['query']}' should have {hits_expected} records but"
                f" {hsps_found} were found"
            )
        if current["query_length"] is None:
            raise BlastTabError(f"length of query '{current['query']}' is unknown")
        results.append(current)

    try:
        with open(blast_tab_path, "rt") as blast_in:
            blast_lines = blast_in.readlines()
    except UnicodeDecodeError as e:
        raise BlastTabError(f"'{Path(blast_tab_path).name}' is not a text file ({e.reason})")

    for line in blast_lines:
        if not line.strip():
            continue
        if line.startswith("#"):
            comment = line[1:].strip()
            if comment.startswith("Query:"):
                close_query()
                query_header = comment[len("Query:"):].split()
                query = query_header[0] if query_header else ""
                current = {
                    "query": query,
                    "query_length": (query_lengths or {}).get(query),
                    "hits": [],
                }
                hits_expected = None
                hsps_found = 0
            elif re.match(r"^\d+ hits found$", comment):
                hits_expected = int(comment.split()[0])
            elif comment.startswith("BLAST processed"):
                footer = re.match(r"^BLAST processed (\d+) quer", comment)
                if not footer:
                    raise BlastTabError(f"malformed BLAST summary line: '{line.strip()}'")
                close_query()
                current = None
                queries_processed = int(footer.group(1))
            continue
        if current is None:
            raise BlastTabError(f"record found outside a query block: '{line.strip()}'")
        hsp = parse_blast_tab_record(line)
        hsps_found += 1
        current["query_length"] = hsp["query_length"]
        if current["hits"] and current["hits"][-1]["subject"] == hsp["subject"]:
            current["hits"][-1]["hsps"].append(hsp)
        else:
            for hit in current["hits"]:
                if hit["subject"] == hsp["subject"]:
                    hit["hsps"].append(hsp)
                    break
            else:
                current["hits"].append({"subject": hsp["subject"], "hsps": [hsp]})

    if queries_processed is None:
        raise BlastTabError(
            f"'{Path(blast_tab_path).name}' is truncated, the BLAST summary line is missing"
        )
    if queries_processed != len(results):
        raise BlastTabError(
            f"BLAST processed {queries_processed} queries but {len(results)} were found in"
            f" '{Path(blast_tab_path).name}'"
        )
    return results


def unmatched_results(query_lengths):
    """
    Results for an assembly without contigs: every query is reported without hits
    """
    return [
        {"query": query, "query_length": length, "hits": []}
        for query, length in query_lengths.items()
    ]
