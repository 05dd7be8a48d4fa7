import stat

import pytest

BLAST_OUTPUT = (
    "# BLASTN 2.14.0+\n"
    "# Query: t1\n"
    "# Database: db\n"
    "# 1 hits found\n"
    "t1\tNODE_1\t100\t99\t100.00\t1\t99\t5\t103\t1e-50\t180\n"
    "# BLASTN 2.14.0+\n"
    "# Query: t2\n"
    "# Database: db\n"
    "# 2 hits found\n"
    "t2\tNODE_2\t100\t50\t100.00\t1\t50\t10\t59\t1e-20\t90\n"
    "t2\tNODE_3\t100\t50\t100.00\t51\t100\t10\t59\t1e-20\t90\n"
    "# BLASTN 2.14.0+\n"
    "# Query: t3\n"
    "# Database: db\n"
    "# 0 hits found\n"
    "# BLAST processed 3 queries\n"
)

# Appends the name of the tool to 'calls.txt' next to the stand-ins
TRACE = 'echo "$(basename "$0")" >> "$(dirname "$0")/calls.txt"\n'


def make_tool(tool_dir, name, body):
    tool = tool_dir / name
    tool.write_text(f"#!/bin/sh\n{TRACE}{body}\n")
    tool.chmod(tool.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(tool)


@pytest.fixture
def tool_dir(tmp_path):
    tool_dir = tmp_path / "bin"
    tool_dir.mkdir()
    return tool_dir


@pytest.fixture
def tools(tmp_path, tool_dir):
    """
    Stand-in executables for velvet and BLAST+, velveth leaves a graph file behind and blastn
    copies a canned output to the path given with '-out'
    """
    canned = tmp_path / "canned_blast.tsv"
    canned.write_text(BLAST_OUTPUT)
    find_out = (
        'while [ $# -gt 0 ]; do\n'
        '  if [ "$1" = "-out" ]; then out="$2"; fi\n'
        '  shift\n'
        'done\n'
    )
    blastn_body = find_out + f'cat "{canned}" > "$out"'
    return {
        "velveth": make_tool(tool_dir, "velveth", ': > "$1/Sequences"'),
        "velvetg": make_tool(
            tool_dir, "velvetg", 'printf ">NODE_1\\nACGTACGT\\n" > "$1/contigs.fa"'
        ),
        "velvetg_empty": make_tool(tool_dir, "velvetg_empty", ': > "$1/contigs.fa"'),
        "velvetg_fail": make_tool(tool_dir, "velvetg_fail", 'echo "out of memory" >&2; exit 1'),
        "velvetg_slow": make_tool(
            tool_dir, "velvetg_slow", 'sleep 1; printf ">NODE_1\\nACGT\\n" > "$1/contigs.fa"'
        ),
        "velvetg_hang": make_tool(tool_dir, "velvetg_hang", "sleep 10"),
        "makeblastdb": make_tool(tool_dir, "makeblastdb", ': > "$6.nhr"'),
        "blastn": make_tool(tool_dir, "blastn", blastn_body),
        "blastn_truncated": make_tool(
            tool_dir, "blastn_truncated", blastn_body + ' && sed -i "$ d" "$out"'
        ),
        "blastn_unwritable": make_tool(
            tool_dir, "blastn_unwritable", blastn_body + ' && mkdir "${out%.tsv}_blastStats.txt"'
        ),
        "blastn_binary": make_tool(
            tool_dir,
            "blastn_binary",
            find_out + "printf '# Query: t\\377\\376\\n# BLAST processed 1 queries\\n' > \"$out\"",
        ),
    }


@pytest.fixture
def prep_tools(tool_dir):
    """
    Stand-ins for scythe, sickle and fastq-join. scythe copies its input, sickle copies the pairs
    and writes one singleton, fastq-join writes R1 as joined reads and R2 to both unjoined files
    """
    scythe = (
        'while [ $# -gt 0 ]; do\n'
        '  if [ "$1" = "-o" ]; then out="$2"; shift; fi\n'
        '  last="$1"\n'
        '  shift\n'
        'done\n'
        'cp "$last" "$out"'
    )
    # sickle pe -f R1 -r R2 -t TYPE -o OUT1 -p OUT2 -s SINGLES
    sickle = 'cp "$3" "$9"; cp "$5" "${11}"; printf "@s1\\nGGGG\\n+\\nIIII\\n" > "${13}"'
    # fastq-join -v SEP -m MIN R1 R2 -o TEMPLATE
    fastq_join = (
        'template="$8"\n'
        'cp "$5" "$(echo "$template" | sed "s/%/join/")"\n'
        'cp "$6" "$(echo "$template" | sed "s/%/un1/")"\n'
        'cp "$6" "$(echo "$template" | sed "s/%/un2/")"'
    )
    return {
        "scythe": make_tool(tool_dir, "scythe", scythe),
        "sickle": make_tool(tool_dir, "sickle", sickle),
        "sickle_fail": make_tool(tool_dir, "sickle_fail", "exit 1"),
        "fastq_join": make_tool(tool_dir, "fastq-join", fastq_join),
        "fastq_join_partial": make_tool(
            tool_dir, "fastq-join_partial", 'cp "$5" "$(echo "$8" | sed "s/%/join/")"'
        ),
    }
