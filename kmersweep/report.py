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


import time
from pathlib import Path

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.colors import qualitative
from plotly.subplots import make_subplots

from . import settings
from .classify import best_kmer
from .misc import dim, elapsed_time, red


def build_sweep_report(out_dir, sweep_stats_tsv, from_k, to_k, report_name=None):
    """
    Line plots of each recovery count versus kmer size, one line per sample in 'sweep_stats_tsv'.
    The x-axis spans the whole swept range so failed kmer sizes show up as gaps. Returns the path
    to the HTML file and a message
    """
    start = time.time()

    df = pd.read_table(sweep_stats_tsv, comment="#")
    sample_list = df["sample_name"].unique()
    if report_name is None:
        report_name = f"{sample_list[0]}.{settings.SWEEP_FILES['HTML']}"

    counts = settings.SWEEP_COUNTS
    fig = make_subplots(
        rows=2,
        cols=2,
        subplot_titles=[settings.SWEEP_COUNT_TITLES[count] for count in counts],
        shared_xaxes=True,
        horizontal_spacing=0.08,
        vertical_spacing=0.12,
    )
    colors = qualitative.Plotly
    for i, sample_name in enumerate(sample_list):
        data = df[df["sample_name"] == sample_name].sort_values(by="kmer")
        # Reindex to every kmer size of the range so missing kmer sizes break the line
        data = (
            data.set_index("kmer")
            .reindex(pd.Index(range(from_k, to_k + 1, 2), name="kmer"))
            .reset_index()
        )
        sample_best = best_kmer(
            data.dropna(subset=["targets"]).astype({c: int for c in ["targets"] + counts})
            .to_dict("records")
        )
        for j, count in enumerate(counts):
            customdata = np.stack(
                (data["targets"], data[f"{count}_pct"]),
                axis=-1,
            )
            fig.add_trace(
                go.Scatter(
                    x=data["kmer"],
                    y=data[count],
                    customdata=customdata,
                    mode="lines+markers",
                    name=sample_name,
                    legendgroup=sample_name,
                    showlegend=(j == 0),
                    line=dict(width=3, color=colors[i % len(colors)]),
                    marker=dict(size=5),
                    connectgaps=False,
                    hovertemplate=(
                        f"<b>{sample_name}</b><br>"
                        "k = %{x}<br>"
                        "Targets: <b>%{y:,.0f}</b> of %{customdata[0]:,.0f}"
                        " (%{customdata[1]:.2f}%)"
                        "<extra></extra>"
                    ),
                ),
                row=j // 2 + 1,
                col=j % 2 + 1,
            )
        if len(sample_list) == 1 and sample_best is not None:
            for j in range(len(counts)):
                fig.add_vline(
                    x=sample_best,
                    line_width=1,
                    line_dash="dash",
                    line_color="#636363",
                    row=j // 2 + 1,
                    col=j % 2 + 1,
                )

    max_targets = df["targets"].max()
    fig.update_xaxes(title_text="kmer value", range=[from_k - 1, to_k + 1], row=2)
    fig.update_yaxes(
        title_text="Number of targets", range=[0, max_targets * 1.05 if max_targets else 1]
    )
    title = (
        "<b>kmersweep: Target Recovery per kmer Size</b><br>"
        f"<sup>(Source: {Path(sweep_stats_tsv).name}"
    )
    if len(sample_list) == 1 and sample_best is not None:
        title += f", best kmer size = {sample_best}"
    title += ")</sup>"
    fig.update_layout(
        font_family="Arial",
        title_text=title,
        height=800,
        hovermode="closest",
        legend_title_text="Sample",
    )

    config = {
        "toImageButtonOptions": {
            "format": "svg",
            "filename": Path(report_name).stem,
        },
        "modeBarButtonsToAdd": ["v1hovermode", "hovercompare", "togglespikelines"],
    }
    sweep_html_report = Path(out_dir, report_name)
    with open(sweep_html_report, "w") as f:
        f.write(fig.to_html(full_html=True, include_plotlyjs="cdn", config=config))
    if sweep_html_report.exists() and sweep_html_report.is_file():
        sweep_html_msg = dim(f"Sweep report generated in {elapsed_time(time.time() - start)}")
    else:
        sweep_html_msg = red("Sweep report not generated, verify your plotly installation")

    return sweep_html_report, sweep_html_msg
