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
import argparse
import pandas
from phylorange import utility
from phylorange import model
from phylorange import summarize

class InvalidTopologyException(model.RangeModelException):
    def __init__(self, *args, **kwargs):
        model.RangeModelException.__init__(self, *args, **kwargs)

def node_description(node):
    taxon = getattr(node, "taxon", None)
    if taxon is not None and taxon.label is not None:
        return "'{}'".format(taxon.label)
    if getattr(node, "label", None) is not None:
        return "'{}'".format(node.label)
    return "<unlabeled node>"

def is_out_of_range_rate(value):
    return not (0.0 <= value <= 1.0)

class RangeReconstructor(object):
    """
    Reconstructs ancestral range intensity grids over a binary phylogeny.

    Tip range grids are carried down each branch with the movement function
    (``model.propagate``) and merged at each internal node with the
    speciation function (``model.combine``), visiting nodes in post-order so
    that the root is resolved last.
    """

    @staticmethod
    def model_arg_parser():
        parser = argparse.ArgumentParser(add_help=False)
        movement_submodel_params = parser.add_argument_group("MODEL: Movement Function Parameters")
        movement_submodel_params.add_argument("-a", "--alpha",
                type=float,
                default=0.5,
                help="Weight of colonization of unoccupied cells (default: %(default)s).")
        movement_submodel_params.add_argument("-b", "--beta",
                type=float,
                default=0.5,
                help="Weight of persistence in occupied cells (default: %(default)s).")
        branch_discretization_params = parser.add_argument_group("MODEL: Branch Discretization")
        branch_discretization_params.add_argument("-t", "--time-step",
                type=float,
                default=1.0,
                help="Branch length corresponding to one application of the movement function (default: %(default)s).")
        return parser

    def __init__(self, **kwargs):
        self.configure_reconstructor(kwargs)
        self.set_model(kwargs)
        if kwargs:
            raise TypeError("Unsupported configuration keywords: {}".format(kwargs))
        self.reset()

    def configure_reconstructor(self, configd):
        self.current_node = None
        self.run_logger = configd.pop("run_logger", None)
        if self.run_logger is None:
            self.run_logger = utility.get_quiet_logger("phylorange")
        self.run_logger.system = self
        self.name = configd.pop("name", None)
        if self.name is None:
            self.name = str(id(self))
        self.run_logger.debug("Configuring reconstruction '{}'".format(self.name))

    def set_model(self, model_params_d):

        # Landscape
        environment = model_params_d.pop("environment", None)
        if environment is None:
            raise TypeError("Environment grid must be specified")
        self.environment = model.as_grid(environment, "environment")
        model.check_non_negative(self.environment, "environment")
        self.run_logger.info("Environment grid: {} rows x {} columns".format(*self.environment.shape))

        # Movement function
        self.alpha = model_params_d.pop("alpha", 0.5)
        self.beta = model_params_d.pop("beta", 0.5)
        self.run_logger.info("Movement function, alpha: {}".format(self.alpha))
        self.run_logger.info("Movement function, beta: {}".format(self.beta))
        for param_name, value in (("alpha", self.alpha), ("beta", self.beta)):
            if is_out_of_range_rate(value):
                self.run_logger.warning("Movement function parameter {} = {} is outside [0, 1]: results may not be biologically meaningful".format(
                    param_name, value))

        # Branch discretization
        self.time_step = model_params_d.pop("time_step", 1.0)
        if not self.time_step > 0:
            raise ValueError("Time step must be positive: {}".format(self.time_step))
        self.steps_per_branch = model_params_d.pop("steps_per_branch", None)
        if self.steps_per_branch is None:
            self.run_logger.info("Branch step counts: branch length / {}".format(self.time_step))
        elif callable(self.steps_per_branch):
            self.run_logger.info("Branch step counts: user-supplied function")
        else:
            self.run_logger.info("Branch step counts: user-supplied mapping ({} entries)".format(len(self.steps_per_branch)))

    def reset(self):
        self.current_node = None
        self.node_labels = {}
        self.node_states = collections.OrderedDict()
        self.branch_steps = collections.OrderedDict()
        self.internal_node_labels = []
        self.root_label = None

    def validate_topology(self, seed_node):
        """
        Walks the tree from ``seed_node`` checking that it is strictly binary
        and acyclic. Returns the nodes in pre-order and in post-order.
        """
        preorder = []
        postorder = []
        visited = set()
        to_visit = [(seed_node, False)]
        while to_visit:
            node, expanded = to_visit.pop()
            if expanded:
                postorder.append(node)
                continue
            if id(node) in visited:
                raise InvalidTopologyException("Node {} is reached more than once: tree contains a cycle or a shared node".format(
                    node_description(node)))
            visited.add(id(node))
            preorder.append(node)
            children = node.child_nodes()
            if len(children) not in (0, 2):
                raise InvalidTopologyException("Node {} has {} children: only binary trees are supported".format(
                    node_description(node), len(children)))
            to_visit.append((node, True))
            for child in reversed(children):
                to_visit.append((child, False))
        return preorder, postorder

    def assign_node_labels(self, preorder):
        """
        Labels every node. Leaves keep their (taxon) label, which must be
        unique since it is the key of the tip range grid. Internal nodes keep
        their own label unless a leaf or an earlier internal node (in
        pre-order) already has it, as with support values; those and the
        unlabeled ones get "N<k>", skipping any label found in the tree.
        """
        node_labels = {}
        leaf_labels = set()
        for node in preorder:
            if node.child_nodes():
                continue
            taxon = getattr(node, "taxon", None)
            if taxon is not None:
                label = taxon.label
            else:
                label = node.label
            if label is None:
                raise InvalidTopologyException("Leaf without a label: cannot be matched to a tip range grid")
            if label in leaf_labels:
                raise InvalidTopologyException("Duplicate leaf label: '{}'".format(label))
            leaf_labels.add(label)
            node_labels[node] = label
        reserved_labels = set(leaf_labels)
        for node in preorder:
            if node.child_nodes() and node.label is not None:
                reserved_labels.add(node.label)
        used_labels = set(leaf_labels)
        num_generated = 0
        for node in preorder:
            if not node.child_nodes():
                continue
            label = node.label
            if label is None or label in used_labels:
                while True:
                    num_generated += 1
                    label = "N{}".format(num_generated)
                    if label not in reserved_labels and label not in used_labels:
                        break
            used_labels.add(label)
            node_labels[node] = label
        return node_labels

    def branch_step_count(self, label, edge_length):
        """
        Number of movement function applications along the branch subtending
        the node labeled ``label``.
        """
        if edge_length is None:
            edge_length = 0.0
        if self.steps_per_branch is None:
            value = round(edge_length / self.time_step)
        elif callable(self.steps_per_branch):
            value = self.steps_per_branch(edge_length)
        elif label in self.steps_per_branch:
            value = self.steps_per_branch[label]
        elif edge_length in self.steps_per_branch:
            value = self.steps_per_branch[edge_length]
        else:
            raise ValueError("No step count given for branch subtending '{}' (length {})".format(label, edge_length))
        return model.as_step_count(value, label)

    def derive_branch_steps(self, postorder, seed_node):
        branch_steps = collections.OrderedDict()
        for node in postorder:
            if node is seed_node:
                continue
            label = self.node_labels[node]
            nsteps = self.branch_step_count(label, node.edge.length)
            if nsteps < 0:
                raise model.NegativeStepCountException("Branch subtending '{}' has a negative step count: {}".format(label, nsteps),
                        label=label,
                        nsteps=nsteps)
            branch_steps[label] = nsteps
        return branch_steps

    def prepare_tip_grids(self, tip_grids, leaf_labels):
        prepared = {}
        for label in leaf_labels:
            if label not in tip_grids:
                raise InvalidTopologyException("No range grid given for leaf '{}'".format(label))
            desc = "range grid of '{}'".format(label)
            grid = model.as_grid(tip_grids[label], desc)
            model.check_same_shape(grid, self.environment, desc, "environment")
            model.check_non_negative(grid, desc)
            prepared[label] = grid
        for label in tip_grids:
            if label not in prepared:
                self.run_logger.warning("Ignoring range grid for '{}': no such leaf in tree".format(label))
        return prepared

    def run(self, tree, tip_grids):
        """
        Reconstructs the range intensity grid of every internal node of
        ``tree``.

        Parameters
        ----------
        tree : dendropy.Tree or dendropy.Node
            Rooted binary tree; edge lengths give the branch durations.
        tip_grids : dict
            Range grid of each leaf, keyed by leaf (taxon) label.

        Returns
        -------
        d : collections.OrderedDict
            Grids of internal nodes keyed by node label, in post-order (the
            root last). Grids of all nodes, tips included, are kept in
            ``self.node_states``.
        """
        self.reset()
        seed_node = getattr(tree, "seed_node", tree)
        preorder, postorder = self.validate_topology(seed_node)
        self.node_labels = self.assign_node_labels(preorder)
        leaf_labels = [self.node_labels[nd] for nd in postorder if not nd.child_nodes()]
        prepared_tip_grids = self.prepare_tip_grids(tip_grids, leaf_labels)
        self.branch_steps = self.derive_branch_steps(postorder, seed_node)
        self.run_logger.info("Reconstructing ancestral ranges over {} leaves and {} internal nodes".format(
            len(leaf_labels), len(postorder) - len(leaf_labels)))
        for node in postorder:
            label = self.node_labels[node]
            self.current_node = label
            if node.child_nodes():
                self.node_states[label] = self.resolve_node(node)
                self.internal_node_labels.append(label)
                self.run_logger.info("Ancestral range resolved")
            else:
                self.node_states[label] = prepared_tip_grids[label]
        self.current_node = None
        self.root_label = self.node_labels[seed_node]
        return self.internal_node_states()

    def resolve_node(self, node):
        child_labels = []
        propagated = []
        for child in node.child_nodes():
            child_label = self.node_labels[child]
            # children precede parents in post-order
            assert child_label in self.node_states
            nsteps = self.branch_steps[child_label]
            self.run_logger.debug("Propagating range of '{}' over {} step(s)".format(child_label, nsteps))
            grid = model.propagate(self.node_states[child_label],
                    self.environment,
                    self.alpha,
                    self.beta,
                    nsteps)
            child_labels.append(child_label)
            propagated.append(grid)
        try:
            return model.combine(propagated[0], propagated[1], labels=child_labels)
        except model.DegenerateNormalizationException as e:
            raise model.DegenerateNormalizationException("{} (resolving node '{}')".format(e, self.node_labels[node]),
                    label=e.label) from e

    def internal_node_states(self):
        return collections.OrderedDict((label, self.node_states[label]) for label in self.internal_node_labels)

    @property
    def root_state(self):
        if self.root_label is None:
            return None
        return self.node_states[self.root_label]

def reconstruct(tree,
        tip_grids,
        environment,
        alpha,
        beta,
        steps_per_branch=None,
        time_step=1.0,
        run_logger=None):
    """
    Reconstructs the ancestral range intensity grid of every internal node
    of ``tree``.

    Parameters
    ----------
    tree : dendropy.Tree
        Rooted, strictly binary tree.
    tip_grids : dict
        Range grid of each leaf, keyed by leaf label.
    environment : array-like
        Environmental suitability grid, shared by all branches.
    alpha : float
        Colonization weight of the movement function.
    beta : float
        Persistence weight of the movement function.
    steps_per_branch : None, callable or dict
        How branches are converted to numbers of movement function steps:
        if `None`, branch length divided by ``time_step`` and rounded; if a
        callable, called with the branch length; if a dict, keyed by the
        label of the node subtended by the branch or by branch length.
    time_step : float
        Branch length per step, if ``steps_per_branch`` is `None`.
    run_logger : utility.RunLogger
        Logger; messages only propagate through ``logging`` if not given.

    Returns
    -------
    d : collections.OrderedDict
        Internal node grids keyed by node label, root last.
    """
    reconstructor = RangeReconstructor(
            environment=environment,
            alpha=alpha,
            beta=beta,
            steps_per_branch=steps_per_branch,
            time_step=time_step,
            run_logger=run_logger)
    return reconstructor.run(tree, tip_grids)

def sweep_rate_parameters(
        tree,
        tip_grids,
        environment,
        alphas,
        betas,
        record_degenerate=False,
        **kwargs):
    """
    Repeats the reconstruction for every combination of the given alpha and
    beta values, summarizing the root grid of each.

    Parameters
    ----------
    tree : dendropy.Tree
        Rooted, strictly binary tree.
    tip_grids : dict
        Range grid of each leaf, keyed by leaf label.
    environment : array-like
        Environmental suitability grid.
    alphas : iterable of floats
        Values of alpha to visit.
    betas : iterable of floats
        Values of beta to visit.
    record_degenerate : bool
        If `True`, a combination whose reconstruction fails with
        DegenerateNormalizationException is logged and recorded with missing
        statistics; otherwise the exception propagates.
    **kwargs : keyword arguments
        Further RangeReconstructor configuration, re-used for each run.

    Returns
    -------
    df : pandas.DataFrame
        One row per (alpha, beta) combination.
    """
    betas = list(betas)
    records = []
    for alpha in alphas:
        for beta in betas:
            reconstructor = RangeReconstructor(
                    environment=environment,
                    alpha=alpha,
                    beta=beta,
                    **kwargs)
            record = collections.OrderedDict()
            record["alpha"] = alpha
            record["beta"] = beta
            try:
                reconstructor.run(tree, tip_grids)
            except model.DegenerateNormalizationException as e:
                if not record_degenerate:
                    raise
                reconstructor.run_logger.warning("alpha = {}, beta = {}: {}".format(alpha, beta, e))
                record["degenerate.lineage"] = e.label
                records.append(record)
                continue
            record["degenerate.lineage"] = None
            record.update(summarize.summarize_grid(reconstructor.root_state))
            records.append(record)
    return pandas.DataFrame(records)
