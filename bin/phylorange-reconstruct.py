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

import sys
import argparse
import phylorange
from phylorange import model
from phylorange import reconstruct
from phylorange import gridio
from phylorange import summarize
from phylorange import utility

def main():
    parser = argparse.ArgumentParser(
            parents=[
                gridio.input_arg_parser(),
                reconstruct.RangeReconstructor.model_arg_parser(),
                utility.logging_arg_parser(),
                ],
            description="{} Ancestral range reconstruction".format(phylorange.description())
            )
    output_options = parser.add_argument_group("Output Options")
    output_options.add_argument('-o', '--output-prefix',
        action='store',
        dest='output_prefix',
        type=str,
        default='phylorange_run',
        metavar='OUTPUT-FILE-PREFIX',
        help="Prefix for output files (default='%(default)s').")
    args = parser.parse_args()

    run_logger = utility.get_run_logger(
            name="phylorange",
            log_path=args.output_prefix + ".log",
            stderr_logging_level=args.stderr_logging_level,
            file_logging_level=args.file_logging_level)
    run_logger.info("Starting: {}".format(phylorange.description()))
    try:
        tree, tip_grids, environment = gridio.read_run_inputs(args, run_logger)
        reconstructor = reconstruct.RangeReconstructor(
                name=args.output_prefix,
                environment=environment,
                alpha=args.alpha,
                beta=args.beta,
                time_step=args.time_step,
                run_logger=run_logger)
        internal_node_states = reconstructor.run(tree, tip_grids)
    except (model.RangeModelException, ValueError) as e:
        run_logger.critical("Reconstruction failed: {}".format(e))
        sys.exit(1)

    paths = gridio.write_node_state_grids(internal_node_states, args.output_prefix)
    for label in paths:
        run_logger.info("Range grid of node '{}' written to: {}".format(label, paths[label]))
    summary_path = args.output_prefix + ".summary.txt"
    df = summarize.summarize_node_states(reconstructor.node_states, reconstructor.branch_steps)
    summarize.write_summary_table(df, summary_path)
    run_logger.info("Node summaries written to: {}".format(summary_path))
    tree_path = args.output_prefix + ".tree.tre"
    gridio.write_labeled_tree(tree, tree_path, reconstructor.node_labels)
    run_logger.info("Labeled tree written to: {}".format(tree_path))

if __name__ == "__main__":
    main()
