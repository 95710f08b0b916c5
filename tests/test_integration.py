import gzip
import json
import os
import subprocess
import sys
from pathlib import Path

import pytest

SRC_DIR = Path(__file__).resolve().parent.parent / "src"


def run_cli(args, cwd, stdin=None):
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
    cmd = [sys.executable, "-m", "analyze_gc.main"] + [str(a) for a in args]
    result = subprocess.run(cmd, capture_output=True, cwd=cwd, env=env, input=stdin)
    print(result.stdout.decode(errors="replace"))
    print(result.stderr.decode(errors="replace"))
    return result


@pytest.mark.parametrize("threads", [1, 2])
def test_full_pipeline(tmp_path, threads):
    fasta = tmp_path / "ref.fa.gz"
    with gzip.open(fasta, "wt") as f:
        f.write(">chr1\nACGTACGTNNACGT\n>chr2 second\nGGGGCCCCAATT\n")
    output_dir = tmp_path / "out"

    result = run_cli([
        fasta,
        "-o", output_dir,
        "-p", "toy",
        "-i", "toy_genome",
        "-r", "4", "6",
        "-t", threads,
        "--quiet"
    ], cwd=tmp_path)

    assert result.returncode == 0
    assert (output_dir / "toy.json").exists()
    assert (output_dir / "toy_dist.txt").exists()
    assert (output_dir / "toy_report.html").exists()
    assert (output_dir / "log.txt").exists()

    with open(output_dir / "toy.json", encoding="utf-8") as f:
        document = json.load(f)
    assert document["identifier"] == "toy_genome"
    assert document["read_lengths"] == [4, 6]
    combined = {tuple(e["key"]): e["frequency"] for e in document["results"]["4"]["combined_gc"]}
    assert combined[(2, 2)] == 7
    assert sum(combined.values()) == 15


def test_pipeline_reads_stdin(tmp_path):
    output_dir = tmp_path / "out"
    result = run_cli(["-o", output_dir, "-r", "4", "--no-bisulfite", "-t", "1", "--quiet"],
                     cwd=tmp_path, stdin=b">chr1\nACGTACGTNNACGT\n")

    assert result.returncode == 0
    with open(output_dir / "analyze_gc.json", encoding="utf-8") as f:
        document = json.load(f)
    assert document["bisulfite"] is False
    assert document["results"]["4"] == {"combined_gc": [{"key": [2, 2], "frequency": 6}]}


def test_malformed_input_fails_without_report(tmp_path):
    fasta = tmp_path / "bad.fa"
    fasta.write_text("this is not fasta\n")
    output_dir = tmp_path / "out"

    result = run_cli([fasta, "-o", output_dir, "-t", "1"], cwd=tmp_path)

    assert result.returncode != 0
    assert not (output_dir / "analyze_gc.json").exists()
    assert "Critical failure" in (output_dir / "log.txt").read_text()


def test_invalid_threshold_fails(tmp_path):
    fasta = tmp_path / "ref.fa"
    fasta.write_text(">chr1\nACGT\n")
    output_dir = tmp_path / "out"

    result = run_cli([fasta, "-o", output_dir, "-T", "1.5", "--quiet"], cwd=tmp_path)

    assert result.returncode == 1
    assert not (output_dir / "analyze_gc.json").exists()
    assert "Illegal threshold" in (output_dir / "log.txt").read_text()
