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

"""
Movement and speciation functions of the grid range-evolution model.

The movement function diffuses an occupancy intensity grid by one discrete
time step, weighting each cell's neighborhood intensity by the two rate
parameters and by the environmental suitability of the cell. Applying it
repeatedly along a branch carries a descendant range back towards its
ancestor. The speciation function merges the two grids arriving at a node
into the grid of the ancestral lineage.
"""

import math
import numpy

# Neighborhood sums are always scaled by the full 3x3 neighbor count, also at
# edge and corner cells: cells beyond the grid contribute nothing.
NEIGHBORHOOD_DIVISOR = 8.0

class RangeModelException(Exception):
    def __init__(self, *args, **kwargs):
        Exception.__init__(self, *args, **kwargs)

class DimensionMismatchException(RangeModelException):
    def __init__(self, *args, **kwargs):
        RangeModelException.__init__(self, *args, **kwargs)

class DegenerateNormalizationException(RangeModelException):

    def __init__(self, message, label=None):
        RangeModelException.__init__(self, message)
        self.label = label

class NegativeStepCountException(RangeModelException):

    def __init__(self, message, label=None, nsteps=None):
        RangeModelException.__init__(self, message)
        self.label = label
        self.nsteps = nsteps

def as_grid(values, name="grid"):
    """
    Returns ``values`` as a two-dimensional array of floats, raising
    DimensionMismatchException if it is not two-dimensional.
    """
    grid = numpy.asarray(values, dtype=float)
    if grid.ndim != 2:
        raise DimensionMismatchException("{} must be two-dimensional, but has {} dimension(s)".format(name, grid.ndim))
    return grid

def check_same_shape(grid1, grid2, name1="grid", name2="environment"):
    if grid1.shape != grid2.shape:
        raise DimensionMismatchException("Dimensions of {} {} do not match dimensions of {} {}".format(
            name1, grid1.shape, name2, grid2.shape))

def check_non_negative(grid, name="grid"):
    if not numpy.all(numpy.isfinite(grid)):
        raise ValueError("{} has non-finite values".format(name))
    if numpy.any(grid < 0):
        raise ValueError("{} has negative values".format(name))

def neighborhood_sum(grid, i, q):
    """
    Sum of the intensities of the cells in the 3x3 block centered on cell
    (i, q), excluding the cell itself. Only cells within the grid are
    counted: eight at interior cells, five along edges and three at corners.
    """
    nrows, ncols = grid.shape
    total = 0.0
    for row in range(max(0, i-1), min(nrows-1, i+1) + 1):
        for col in range(max(0, q-1), min(ncols-1, q+1) + 1):
            if row == i and col == q:
                continue
            total += grid[row, col]
    return total

def neighborhood_sums(grid):
    """
    Neighborhood sums of all cells of ``grid`` at once. Equivalent to calling
    ``neighborhood_sum`` on every cell.
    """
    nrows, ncols = grid.shape
    padded = numpy.pad(grid, pad_width=1, mode="constant", constant_values=0.0)
    total = numpy.zeros(grid.shape, dtype=float)
    for row_offset in range(3):
        for col_offset in range(3):
            if row_offset == 1 and col_offset == 1:
                continue
            total += padded[row_offset:row_offset+nrows, col_offset:col_offset+ncols]
    return total

def update(grid, environment, alpha, beta):
    """
    Applies the movement function once.

    For each cell, with ``n`` the neighborhood sum divided by 8::

        P'(i,q) = E(i,q) * ((1 - P(i,q)) * n * alpha + P(i,q) * n * beta)

    All cells are computed from the values of ``grid``, which is left
    untouched; a new grid is returned.

    Parameters
    ----------
    grid : array-like
        Current intensity grid.
    environment : array-like
        Environmental suitability grid, of the same dimensions as ``grid``.
    alpha : float
        Weight of colonization of cells not (yet) occupied.
    beta : float
        Weight of persistence in cells already occupied.

    Returns
    -------
    g : numpy.ndarray
        Intensity grid after one time step.
    """
    grid = as_grid(grid, "grid")
    environment = as_grid(environment, "environment")
    check_same_shape(grid, environment)
    nbar = neighborhood_sums(grid) / NEIGHBORHOOD_DIVISOR
    return environment * ((1.0 - grid) * nbar * alpha + grid * nbar * beta)

def as_step_count(value, label=None):
    """
    Returns ``value`` as an int, raising ValueError if it is not integral.
    """
    try:
        nsteps = int(value)
    except (TypeError, ValueError, OverflowError):
        nsteps = None
    if nsteps is None or nsteps != value:
        if label is None:
            raise ValueError("Step count is not an integer: {}".format(value))
        raise ValueError("Step count for branch subtending '{}' is not an integer: {}".format(label, value))
    return nsteps

def propagate(grid, environment, alpha, beta, nsteps):
    """
    Applies the movement function ``nsteps`` times in succession, each step
    taking the result of the previous one as input. With ``nsteps`` of 0 the
    result is a copy of ``grid``.
    """
    nsteps = as_step_count(nsteps)
    if nsteps < 0:
        raise NegativeStepCountException("Cannot propagate over a negative number of steps: {}".format(nsteps),
                nsteps=nsteps)
    grid = as_grid(grid, "grid")
    environment = as_grid(environment, "environment")
    check_same_shape(grid, environment)
    result = grid.copy()
    for step in range(nsteps):
        result = update(result, environment, alpha, beta)
    return result

def normalize(grid, label=None):
    """
    Returns ``grid`` divided by its maximum value. A grid whose maximum is not
    positive carries no range information and cannot be normalized.
    """
    grid = as_grid(grid, "grid")
    max_value = grid.max() if grid.size else 0.0
    if not (max_value > 0 and math.isfinite(max_value)):
        if label is None:
            desc = "grid"
        else:
            desc = "grid of '{}'".format(label)
        raise DegenerateNormalizationException("Cannot normalize {}: maximum value is {}".format(desc, max_value),
                label=label)
    return grid / max_value

def combine(grid1, grid2, labels=None):
    """
    Applies the speciation function: each of the two grids is normalized to
    a maximum of 1 and their element-wise product is returned. ``labels``,
    if given, is a pair naming the lineages contributing each grid, used to
    report which of them failed to normalize.
    """
    if labels is None:
        labels = (None, None)
    grid1 = as_grid(grid1, "first grid")
    grid2 = as_grid(grid2, "second grid")
    check_same_shape(grid1, grid2, "first grid", "second grid")
    return normalize(grid1, labels[0]) * normalize(grid2, labels[1])
