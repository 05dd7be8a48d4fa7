import pytest

from kmersweep.run import check_config_files, check_config_targets, parse_config


def write_config(tmp_path, text):
    config = tmp_path / "samples.tsv"
    config.write_text(text)
    return config


def test_parse_config_skips_comments_and_blank_lines(tmp_path):
    config = write_config(
        tmp_path,
        "#R1\tR2\tname\tadapters\ttargets\n"
        "A_R1.fq\tA_R2.fq\tsampleA\tadapters.fa\ttargets.fa\n"
        "\n"
        "B_R1.fq\tB_R2.fq\tsampleB\tadapters.fa\ttargets.fa\n",
    )
    samples = parse_config(config)
    assert [s["name"] for s in samples] == ["sampleA", "sampleB"]
    assert samples[1] == {
        "r1": "B_R1.fq",
        "r2": "B_R2.fq",
        "name": "sampleB",
        "adapters": "adapters.fa",
        "targets": "targets.fa",
    }


def test_parse_config_wrong_number_of_columns(tmp_path):
    config = write_config(tmp_path, "A_R1.fq\tA_R2.fq\tsampleA\tadapters.fa\n")
    with pytest.raises(ValueError, match="Line 1"):
        parse_config(config)


def test_parse_config_without_samples(tmp_path):
    config = write_config(tmp_path, "# nothing to do\n\n")
    with pytest.raises(ValueError):
        parse_config(config)


def test_parse_config_repeated_names(tmp_path):
    config = write_config(
        tmp_path,
        "A_R1.fq\tA_R2.fq\tsampleA\tadapters.fa\ttargets.fa\n"
        "B_R1.fq\tB_R2.fq\tsampleA\tadapters.fa\ttargets.fa\n",
    )
    with pytest.raises(ValueError, match="sampleA"):
        parse_config(config)


def test_check_config_files_lists_missing_files(tmp_path):
    for name in ["A_R1.fq", "A_R2.fq", "adapters.fa"]:
        (tmp_path / name).write_text("")
    samples = [{
        "r1": str(tmp_path / "A_R1.fq"),
        "r2": str(tmp_path / "A_R2.fq"),
        "name": "sampleA",
        "adapters": str(tmp_path / "adapters.fa"),
        "targets": str(tmp_path / "targets.fa"),
    }]
    assert check_config_files(samples) == [str(tmp_path / "targets.fa")]


def test_check_config_targets_reports_empty_sequences(tmp_path):
    good = tmp_path / "good.fasta"
    good.write_text(">t1\nACGT\n")
    bad = tmp_path / "bad.fasta"
    bad.write_text(">t1\nACGT\n>empty_target\n")
    samples = [
        {"name": "sampleA", "targets": str(good)},
        {"name": "sampleB", "targets": str(bad)},
        {"name": "sampleC", "targets": str(bad)},
    ]
    errors = check_config_targets(samples)
    assert len(errors) == 1
    assert "empty_target" in errors[0]
    assert check_config_targets(samples[:1]) == []
