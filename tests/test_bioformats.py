import gzip

import pytest

from kmersweep.bioformats import (
    BlastTabError,
    blast_tab_to_results,
    fasta_seq_lengths,
    parse_blast_tab_record,
    unmatched_results,
)

BLAST_HEADER = (
    "# BLASTN 2.14.0+\n"
    "# Query: {query}\n"
    "# Database: sample_21\n"
)
BLAST_FIELDS = (
    "# Fields: query acc.ver, subject acc.ver, query length, alignment length, % identity,"
    " q. start, q. end, s. start, s. end, evalue, bit score\n"
)


def blast_block(query, records):
    block = BLAST_HEADER.format(query=query)
    if records:
        block += BLAST_FIELDS
    block += f"# {len(records)} hits found\n"
    for record in records:
        block += "\t".join(str(field) for field in record) + "\n"
    return block


def write_blast(tmp_path, blocks, footer=True, num_queries=None):
    text = "".join(blocks)
    if footer:
        num_queries = len(blocks) if num_queries is None else num_queries
        text += f"# BLAST processed {num_queries} queries\n"
    blast_tab = tmp_path / "targets.fasta_blasted_to_sample_21.tsv"
    blast_tab.write_text(text)
    return blast_tab


def test_parse_record_orders_subject_coordinates():
    hsp = parse_blast_tab_record(
        "t1\tNODE_2_length_300_cov_4.1\t120\t118\t99.15\t2\t119\t250\t133\t1e-55\t213\n"
    )
    assert hsp["query"] == "t1"
    assert hsp["query_length"] == 120
    assert hsp["aln_length"] == 118
    assert hsp["s_start"] == 133
    assert hsp["s_end"] == 250
    assert hsp["s_strand"] == "-"


def test_parse_record_with_wrong_columns_raises():
    with pytest.raises(BlastTabError):
        parse_blast_tab_record("t1\tNODE_1\t120\n")
    with pytest.raises(BlastTabError):
        parse_blast_tab_record("t1\tNODE_1\tlong\t118\t99.1\t2\t119\t5\t122\t1e-55\t213\n")


def test_results_group_hsps_by_subject_and_keep_zero_hit_queries(tmp_path):
    blast_tab = write_blast(tmp_path, [
        blast_block("t1 exon 1", [
            ("t1", "NODE_1", 100, 99, 100.0, 1, 99, 5, 103, "1e-50", 180),
            ("t1", "NODE_1", 100, 20, 98.5, 1, 20, 300, 281, "1e-5", 35.6),
            ("t1", "NODE_7", 100, 40, 97.5, 60, 100, 10, 50, "1e-12", 70.1),
        ]),
        blast_block("t2", []),
    ])
    results = blast_tab_to_results(blast_tab, {"t1": 100, "t2": 250})
    assert [r["query"] for r in results] == ["t1", "t2"]
    t1, t2 = results
    assert t1["query_length"] == 100
    assert [hit["subject"] for hit in t1["hits"]] == ["NODE_1", "NODE_7"]
    assert len(t1["hits"][0]["hsps"]) == 2
    assert t1["hits"][0]["hsps"][1]["s_start"] == 281
    assert t1["hits"][0]["hsps"][1]["s_strand"] == "-"
    assert t2 == {"query": "t2", "query_length": 250, "hits": []}


def test_zero_hit_query_without_known_length_raises(tmp_path):
    blast_tab = write_blast(tmp_path, [blast_block("t2", [])])
    with pytest.raises(BlastTabError):
        blast_tab_to_results(blast_tab)


def test_missing_footer_means_truncated(tmp_path):
    blast_tab = write_blast(
        tmp_path,
        [blast_block("t1", [("t1", "NODE_1", 100, 99, 100.0, 1, 99, 5, 103, "1e-50", 180)])],
        footer=False,
    )
    with pytest.raises(BlastTabError):
        blast_tab_to_results(blast_tab, {"t1": 100})


def test_fewer_records_than_announced_raises(tmp_path):
    block = blast_block("t1", [("t1", "NODE_1", 100, 99, 100.0, 1, 99, 5, 103, "1e-50", 180)])
    block = block.replace("# 1 hits found", "# 3 hits found")
    blast_tab = write_blast(tmp_path, [block])
    with pytest.raises(BlastTabError):
        blast_tab_to_results(blast_tab, {"t1": 100})


def test_processed_queries_mismatch_raises(tmp_path):
    blast_tab = write_blast(tmp_path, [blast_block("t1", [])], num_queries=2)
    with pytest.raises(BlastTabError):
        blast_tab_to_results(blast_tab, {"t1": 100, "t2": 80})


def test_fasta_seq_lengths(tmp_path):
    fasta = tmp_path / "targets.fasta"
    fasta.write_text(">t1 exon 1 of geneA\nACGTACGTAC\nGTACG\n\n>t2\nAAAA\n")
    assert fasta_seq_lengths(fasta) == {"t1": 15, "t2": 4}


def test_fasta_seq_lengths_gzipped(tmp_path):
    fasta = tmp_path / "targets.fasta.gz"
    with gzip.open(fasta, "wt") as fasta_out:
        fasta_out.write(">t1\nACGT\n>t2\nACGTACGT\n")
    assert fasta_seq_lengths(fasta) == {"t1": 4, "t2": 8}


def test_unmatched_results():
    results = unmatched_results({"t1": 100, "t2": 80})
    assert results == [
        {"query": "t1", "query_length": 100, "hits": []},
        {"query": "t2", "query_length": 80, "hits": []},
    ]


def test_non_text_output_raises_blast_error(tmp_path):
    blast_tab = tmp_path / "targets.fasta_blasted_to_sample_21.tsv"
    blast_tab.write_bytes(b"# Query: t\xff\xfe\n# BLAST processed 1 queries\n")
    with pytest.raises(BlastTabError):
        blast_tab_to_results(blast_tab, {"t": 100})


def test_malformed_summary_line_raises(tmp_path):
    blast_tab = tmp_path / "targets.fasta_blasted_to_sample_21.tsv"
    blast_tab.write_text(blast_block("t1", []) + "# BLAST processed many queries\n")
    with pytest.raises(BlastTabError):
        blast_tab_to_results(blast_tab, {"t1": 100})
