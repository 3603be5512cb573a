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
                utility.logging_arg_parser(),
                ],
            description="{} Sensitivity of ancestral range reconstruction to the movement function parameters".format(phylorange.description())
            )
    sweep_options = parser.add_argument_group("Sweep Options")
    sweep_options.add_argument("-a", "--alpha",
            type=float,
            nargs="+",
            default=[0.25, 0.5, 0.75],
            help="Values of alpha to visit (default: %(default)s).")
    sweep_options.add_argument("-b", "--beta",
            type=float,
            nargs="+",
            default=[0.25, 0.5, 0.75],
            help="Values of beta to visit (default: %(default)s).")
    sweep_options.add_argument("-t", "--time-step",
            type=float,
            default=1.0,
            help="Branch length corresponding to one application of the movement function (default: %(default)s).")
    sweep_options.add_argument("--stop-on-degenerate",
            action="store_true",
            default=False,
            help="Abort the sweep if any reconstruction produces an all-zero grid (default: record it and continue).")
    output_options = parser.add_argument_group("Output Options")
    output_options.add_argument('-o', '--output-prefix',
        action='store',
        dest='output_prefix',
        type=str,
        default='phylorange_sweep',
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
        run_logger.info("Sweeping {} value(s) of alpha and {} value(s) of beta".format(len(args.alpha), len(args.beta)))
        df = reconstruct.sweep_rate_parameters(
                tree=tree,
                tip_grids=tip_grids,
                environment=environment,
                alphas=args.alpha,
                betas=args.beta,
                record_degenerate=not args.stop_on_degenerate,
                time_step=args.time_step,
                run_logger=run_logger)
    except (model.RangeModelException, ValueError) as e:
        run_logger.critical("Sweep failed: {}".format(e))
        sys.exit(1)
    sweep_path = args.output_prefix + ".sweep.txt"
    summarize.write_summary_table(df, sweep_path)
    run_logger.info("Sweep results written to: {}".format(sweep_path))

if __name__ == "__main__":
    main()
