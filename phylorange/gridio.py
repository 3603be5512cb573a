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

import os
import argparse
import collections
import numpy
import dendropy
from phylorange import model

GRID_FILE_SUFFIX = ".grid.txt"

def read_grid(src, delimiter=None):
    """
    Reads a grid written as delimited text, one row per line and one value
    per cell. ``src`` is a path or a file-like object. With ``delimiter`` of
    `None`, values are separated by any whitespace.
    """
    return numpy.loadtxt(src, delimiter=delimiter, dtype=float, ndmin=2)

def write_grid(dest, grid, delimiter="\t"):
    numpy.savetxt(dest, numpy.asarray(grid, dtype=float), fmt="%.17g", delimiter=delimiter)

def grid_label_from_path(path):
    basename = os.path.basename(path)
    if basename.endswith(GRID_FILE_SUFFIX):
        return basename[:-len(GRID_FILE_SUFFIX)]
    return os.path.splitext(basename)[0]

def read_tip_grids(specs, delimiter=None):
    """
    Reads the range grids of the tips. Each element of ``specs`` is either
    "LABEL=PATH" or just "PATH", in which case the label is taken from the
    file name (without its extension).
    """
    tip_grids = collections.OrderedDict()
    for spec in specs:
        if "=" in spec:
            label, path = spec.split("=", 1)
        else:
            label, path = grid_label_from_path(spec), spec
        path = os.path.expanduser(os.path.expandvars(path))
        if label in tip_grids:
            raise ValueError("Multiple range grids given for '{}'".format(label))
        tip_grids[label] = read_grid(path, delimiter=delimiter)
    return tip_grids

def read_tree(src, schema="newick"):
    if isinstance(src, str):
        return dendropy.Tree.get(path=src,
                schema=schema,
                preserve_underscores=True,
                rooting="force-rooted")
    return dendropy.Tree.get(file=src,
            schema=schema,
            preserve_underscores=True,
            rooting="force-rooted")

def label_tree_nodes(tree, node_labels):
    """
    Sets the label of each internal node of ``tree`` to the label it was
    given in the reconstruction (``node_labels`` maps nodes to labels).
    """
    for nd in tree.postorder_node_iter():
        if nd.is_internal() and nd in node_labels:
            nd.label = node_labels[nd]
    return tree

def write_labeled_tree(tree, dest, node_labels):
    label_tree_nodes(tree, node_labels)
    tree.write(path=dest, schema="newick")

def node_state_grid_path(output_prefix, label):
    return "{}.{}{}".format(output_prefix, label, GRID_FILE_SUFFIX)

def write_node_state_grids(node_states, output_prefix, delimiter="\t"):
    """
    Writes each grid of ``node_states`` to its own file, named after the
    output prefix and the node label. Returns the paths written, keyed by
    node label.
    """
    paths = collections.OrderedDict()
    for label in node_states:
        path = node_state_grid_path(output_prefix, label)
        write_grid(path, node_states[label], delimiter=delimiter)
        paths[label] = path
    return paths

def input_arg_parser():
    parser = argparse.ArgumentParser(add_help=False)
    input_options = parser.add_argument_group("Input Options")
    input_options.add_argument("tree_path",
            metavar="TREE-FILE",
            help="Path to the tree file.")
    input_options.add_argument("tip_grids",
            nargs="+",
            metavar="[LABEL=]GRID-FILE",
            help="Range grid of each tip; the tip label is taken from the file name unless given explicitly.")
    input_options.add_argument("-e", "--environment",
            default=None,
            metavar="GRID-FILE",
            help="Environmental suitability grid (default: all cells fully suitable).")
    input_options.add_argument("--tree-schema",
            default="newick",
            choices=["newick", "nexus"],
            help="Format of the tree file (default: %(default)s).")
    input_options.add_argument("--grid-delimiter",
            default=None,
            help="Value delimiter of the grid files (default: any whitespace).")
    return parser

def read_run_inputs(args, run_logger):
    """
    Reads the tree, tip range grids and environment grid named by the
    options of ``input_arg_parser``. Without an environment grid, all cells
    are taken to be fully suitable.
    """
    run_logger.info("Reading tree: {}".format(args.tree_path))
    tree = read_tree(args.tree_path, schema=args.tree_schema)
    tip_grids = read_tip_grids(args.tip_grids, delimiter=args.grid_delimiter)
    run_logger.info("Read {} tip range grid(s): {}".format(len(tip_grids), ", ".join(tip_grids.keys())))
    if args.environment is None:
        first_grid = list(tip_grids.values())[0]
        environment = numpy.ones(first_grid.shape, dtype=float)
        run_logger.info("No environment grid given: all cells fully suitable")
    else:
        environment = read_grid(args.environment, delimiter=args.grid_delimiter)
        run_logger.info("Read environment grid: {}".format(args.environment))
    for label in tip_grids:
        model.check_same_shape(tip_grids[label], environment, "range grid of '{}'".format(label), "environment")
    return tree, tip_grids, environment
