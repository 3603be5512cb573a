#! /usr/bin/env python

##############################################################################
##
##  Copyright 2010-2014 Jeet Sukumaran.
##  All rights reserved.
##
##  Redistribution and use in source and binary forms, with or without
##  modification, are permitted provided that the following conditions are met:
##
##      * Redistributions of source code must retain the above copyright
##        notice, this list of conditions and the following disclaimer.
##      * Redistributions in binary form must reproduce the above copyright
##        notice, this list of conditions and the following disclaimer in the
##        documentation and/or other materials provided with the distribution.
##      * The names of its contributors may not be used to endorse or promote
##        products derived from this software without specific prior written
##        permission.
##
##  THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS
##  IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
##  THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR
##  PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL JEET SUKUMARAN OR MARK T. HOLDER
##  BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
##  CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
##  SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
##  INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
##  CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
##  ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
##  POSSIBILITY OF SUCH DAMAGE.
##
##############################################################################

import collections
import numpy
import pandas

def summarize_grid(grid):
    """
    Summary statistics of a single intensity grid.
    """
    grid = numpy.asarray(grid, dtype=float)
    stats = collections.OrderedDict()
    total = float(grid.sum())
    occupied = int(numpy.count_nonzero(grid > 0))
    stats["max"] = float(grid.max())
    stats["mean"] = float(grid.mean())
    stats["total"] = total
    stats["occupied.cells"] = occupied
    stats["occupied.fraction"] = occupied / float(grid.size)
    peak_row, peak_col = numpy.unravel_index(numpy.argmax(grid), grid.shape)
    stats["peak.row"] = int(peak_row)
    stats["peak.col"] = int(peak_col)
    if total > 0:
        rows, cols = numpy.indices(grid.shape)
        stats["centroid.row"] = float((rows * grid).sum() / total)
        stats["centroid.col"] = float((cols * grid).sum() / total)
    else:
        stats["centroid.row"] = float("nan")
        stats["centroid.col"] = float("nan")
    return stats

def summarize_node_states(node_states, branch_steps=None):
    """
    Tabulates the summary statistics of each grid in ``node_states`` (a
    mapping of node labels to grids), one row per node. If ``branch_steps``
    is given, the number of steps along the branch subtending each node is
    added; nodes without one (the root) get a missing value.
    """
    records = []
    for label in node_states:
        record = collections.OrderedDict()
        record["node"] = label
        if branch_steps is not None:
            record["branch.steps"] = branch_steps.get(label, None)
        record.update(summarize_grid(node_states[label]))
        records.append(record)
    return pandas.DataFrame(records)

def write_summary_table(df, dest):
    df.to_csv(dest, sep="\t", index=False, na_rep="NA")
