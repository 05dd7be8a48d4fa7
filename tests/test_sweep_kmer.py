import pandas as pd
import pytest

from kmersweep import settings
from kmersweep.misc import run_command, tqdm_collect_run
from kmersweep.sweep import (
    blast_out_name,
    load_target_lengths,
    read_sweep_point,
    summarize_sweep,
    sweep_kmer,
    velvet_dir_path,
)

TSV_COMMENT = "#kmersweep test\n"

QUERY_LENGTHS = {"t1": 100, "t2": 100, "t3": 80}


def sweep_params(tmp_path, tools, kmer, velvetg="velvetg", blastn="blastn", **kwargs):
    reads = tmp_path / "reads.fastq"
    reads.write_text("")
    params = {
        "velveth_path": tools["velveth"],
        "velvetg_path": tools[velvetg],
        "makeblastdb_path": tools["makeblastdb"],
        "blastn_path": tools[blastn],
        "sample_name": "sampleA",
        "sweep_dir": tmp_path / "sampleA__kmersweep" / settings.SAMPLE_DIRS["SWEEP"],
        "kmer": kmer,
        "singles": reads,
        "r1": reads,
        "r2": reads,
        "targets": tmp_path / "targets.fasta",
        "query_lengths": QUERY_LENGTHS,
        "miseq": False,
        "timeout": None,
        "tsv_comment": TSV_COMMENT,
        "keep_all": False,
        "overwrite": True,
    }
    params.update(kwargs)
    return params


def test_run_command_statuses(tmp_path):
    log_file = tmp_path / "cmd.log"
    assert run_command(["true"], log_file) == "OK"
    assert run_command(["false"], log_file) == "failed"
    assert run_command([str(tmp_path / "missing_program")], log_file) == "failed"
    assert run_command(["sleep", "5"], log_file, timeout=0.5) == "timeout"
    assert "kmersweep's command" in log_file.read_text()


def test_successful_kmer(tmp_path, tools):
    params = sweep_params(tmp_path, tools, 21)
    result = sweep_kmer(**params)
    assert result["status"] == settings.KMER_STATUS["OK"]
    assert result["fatal"] is False
    stats = result["stats"]
    assert stats["targets"] == 3
    assert stats["targets_with_hits"] == 2
    assert stats["targets_with_one_hit"] == 1
    assert stats["targets_with_one_hsp"] == 1
    assert stats["targets_nested_within_contig"] == 1

    velvet_dir = velvet_dir_path(params["sweep_dir"], "sampleA", 21)
    blast_out = velvet_dir / blast_out_name(params["targets"], "sampleA", 21)
    assert blast_out.name == "targets.fasta_blasted_to_sampleA_21.tsv"
    blast_stats = velvet_dir / "targets.fasta_blasted_to_sampleA_21_blastStats.txt"
    assert blast_stats.read_text().startswith("Number of target regions: 3.\n")
    point_file = velvet_dir / f"sampleA_21.{settings.SWEEP_FILES['POINT']}"
    assert read_sweep_point(point_file) == stats
    # graph and database files are removed unless asked to keep them
    assert not (velvet_dir / "Sequences").exists()
    assert not (velvet_dir / "sampleA_21.nhr").exists()
    assert (velvet_dir / settings.VELVET_CONTIGS).exists()


def test_keep_all_keeps_graph_files(tmp_path, tools):
    params = sweep_params(tmp_path, tools, 21, keep_all=True)
    sweep_kmer(**params)
    velvet_dir = velvet_dir_path(params["sweep_dir"], "sampleA", 21)
    assert (velvet_dir / "Sequences").exists()
    assert (velvet_dir / "sampleA_21.nhr").exists()


def test_existing_point_is_reused_without_overwrite(tmp_path, tools):
    first = sweep_kmer(**sweep_params(tmp_path, tools, 21))
    second = sweep_kmer(
        **sweep_params(tmp_path, tools, 21, velvetg="velvetg_fail", overwrite=False)
    )
    assert second["status"] == settings.KMER_STATUS["OK"]
    assert second["stats"] == first["stats"]
    assert "SKIPPED" in second["message"]


def test_point_for_other_targets_is_recomputed(tmp_path, tools):
    sweep_kmer(**sweep_params(tmp_path, tools, 21))
    more_targets = {**QUERY_LENGTHS, "t4": 120}
    second = sweep_kmer(
        **sweep_params(
            tmp_path, tools, 21, velvetg="velvetg_empty", query_lengths=more_targets,
            overwrite=False,
        )
    )
    assert "SKIPPED" not in second["message"]
    assert second["stats"]["targets"] == 4


def test_failed_assembly_is_isolated(tmp_path, tools):
    result = sweep_kmer(**sweep_params(tmp_path, tools, 23, velvetg="velvetg_fail"))
    assert result["status"] == settings.KMER_STATUS["ASM"]
    assert result["stats"] is None
    assert result["fatal"] is False


def test_assembly_timeout(tmp_path, tools):
    result = sweep_kmer(**sweep_params(tmp_path, tools, 23, velvetg="velvetg_hang", timeout=1))
    assert result["status"] == settings.KMER_STATUS["TIMEOUT"]
    assert result["stats"] is None


def test_empty_assembly_leaves_every_target_unmatched(tmp_path, tools):
    result = sweep_kmer(**sweep_params(tmp_path, tools, 25, velvetg="velvetg_empty"))
    assert result["status"] == settings.KMER_STATUS["OK"]
    assert result["stats"]["targets"] == 3
    assert [result["stats"][c] for c in settings.SWEEP_COUNTS] == [0, 0, 0, 0]


def test_truncated_blast_output_is_isolated(tmp_path, tools):
    result = sweep_kmer(**sweep_params(tmp_path, tools, 27, blastn="blastn_truncated"))
    assert result["status"] == settings.KMER_STATUS["MALFORMED"]
    assert result["stats"] is None
    assert result["fatal"] is False


def test_non_text_blast_output_is_isolated(tmp_path, tools):
    result = sweep_kmer(**sweep_params(tmp_path, tools, 27, blastn="blastn_binary"))
    assert result["status"] == settings.KMER_STATUS["MALFORMED"]
    assert result["stats"] is None
    assert result["fatal"] is False


def test_unwritable_statistics_are_fatal(tmp_path, tools):
    result = sweep_kmer(**sweep_params(tmp_path, tools, 29, blastn="blastn_unwritable"))
    assert result["status"] == settings.KMER_STATUS["FATAL"]
    assert result["stats"] is None
    assert "_blastStats.txt" in result["fatal"]


def test_collect_run_stops_after_fatal_result(tmp_path, tools):
    params_list = [
        tuple(sweep_params(tmp_path, tools, 19).values()),
        tuple(sweep_params(tmp_path, tools, 21, blastn="blastn_unwritable").values()),
        tuple(sweep_params(tmp_path, tools, 23).values()),
    ]
    results = tqdm_collect_run(sweep_kmer, params_list, "Sweeping", "Done", "kmer", show_less=True)
    assert [r["kmer"] for r in results] == [19, 21]
    assert results[1]["fatal"]


def test_summarize_sweep_tables(tmp_path, tools):
    kmers = [19, 21, 23, 25]
    results = [
        sweep_kmer(**sweep_params(tmp_path, tools, 19, velvetg="velvetg_empty")),
        sweep_kmer(**sweep_params(tmp_path, tools, 21)),
        sweep_kmer(**sweep_params(tmp_path, tools, 23, velvetg="velvetg_fail")),
    ]
    sample_dir = tmp_path / "sampleA__kmersweep"
    summary = summarize_sweep("sampleA", sample_dir, results, kmers, TSV_COMMENT)

    assert summary["fatal"] is False
    assert summary["best_kmer"] == 21
    assert summary["best_contigs"].endswith(f"sampleA_21_velvet/{settings.VELVET_CONTIGS}")
    assert summary["failures"] == [
        {"sample_name": "sampleA", "kmer": 23, "status": settings.KMER_STATUS["ASM"]},
        {"sample_name": "sampleA", "kmer": 25, "status": "not launched"},
    ]

    stats_df = pd.read_table(summary["stats_tsv"], comment="#")
    assert stats_df["kmer"].tolist() == [19, 21]
    assert stats_df["targets_nested_within_contig"].tolist() == [0, 1]
    assert stats_df["targets_with_hits_pct"].tolist() == [0.0, pytest.approx(66.67)]

    failures_df = pd.read_table(summary["failures_tsv"], comment="#")
    assert failures_df["kmer"].tolist() == [23, 25]
    assert summary["report"].exists()


def test_parallel_run_stops_launching_after_fatal_result(tmp_path, tools):
    params_list = [tuple(sweep_params(tmp_path, tools, 19, blastn="blastn_unwritable").values())]
    params_list += [
        tuple(sweep_params(tmp_path, tools, k, velvetg="velvetg_slow").values())
        for k in [21, 23, 25, 27, 29, 31, 33]
    ]
    results = tqdm_collect_run(
        sweep_kmer, params_list, "Sweeping", "Done", "kmer", concurrent=2, show_less=True
    )
    kmers = [r["kmer"] for r in results]
    assert 19 in kmers
    assert next(r for r in results if r["kmer"] == 19)["fatal"]
    assert len(kmers) == len(set(kmers))
    # pending kmer sizes were cancelled, the ones already running finished
    assert len(results) < len(params_list)
    for result in results:
        if result["kmer"] != 19:
            assert result["status"] == settings.KMER_STATUS["OK"]


def test_parallel_run_collects_every_result(tmp_path, tools):
    params_list = [
        tuple(sweep_params(tmp_path, tools, k).values()) for k in [19, 21, 23, 25]
    ]
    results = tqdm_collect_run(
        sweep_kmer, params_list, "Sweeping", "Done", "kmer", concurrent=2, show_less=True
    )
    assert sorted(r["kmer"] for r in results) == [19, 21, 23, 25]
    assert all(r["stats"]["targets_nested_within_contig"] == 1 for r in results)


def test_targets_without_bases_are_rejected(tmp_path):
    targets = tmp_path / "targets.fasta"
    targets.write_text(">t1\nACGTACGT\n>empty_target\n>t3\nACGT\n")
    with pytest.raises(ValueError, match="empty_target"):
        load_target_lengths(targets)
    targets.write_text("")
    with pytest.raises(ValueError, match="No sequences"):
        load_target_lengths(targets)
    targets.write_text(">t1\nACGTACGT\n>t2\nACG\n")
    assert load_target_lengths(targets) == {"t1": 8, "t2": 3}
