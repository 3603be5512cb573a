#! /usr/bin/env python

import unittest
import collections
import numpy
import dendropy
from phylorange import model
from phylorange import reconstruct
from phylorange import utility

def get_tree(newick):
    return dendropy.Tree.get(data=newick, schema="newick", rooting="force-rooted")

class CyclicNode(object):

    def __init__(self, label):
        self.label = label
        self.taxon = None
        self._child_nodes = []

    def child_nodes(self):
        return list(self._child_nodes)

class RangeReconstructionTestCase(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.logger = utility.get_quiet_logger("phylorange-test")

    def setUp(self):
        self.environment = numpy.ones((5, 5))
        self.environment[0, :] = 0.5
        self.grid_a = numpy.zeros((5, 5))
        self.grid_a[1:3, 1:3] = 1.0
        self.grid_b = numpy.zeros((5, 5))
        self.grid_b[2:4, 2:5] = 1.0

    def test_zero_length_branches_compose_combinations(self):
        tree = get_tree("((A:0,B:0):0,(C:0,D:0):0);")
        tip_grids = {
            "A": self.grid_a,
            "B": self.grid_a.copy(),
            "C": self.grid_b,
            "D": self.grid_b.copy(),
        }
        results = reconstruct.reconstruct(tree, tip_grids, self.environment, 0.5, 0.5)
        self.assertEqual(list(results.keys()), ["N2", "N3", "N1"])
        ab = model.combine(self.grid_a, self.grid_a)
        cd = model.combine(self.grid_b, self.grid_b)
        numpy.testing.assert_allclose(results["N2"], ab, rtol=0, atol=1e-12)
        numpy.testing.assert_allclose(results["N3"], cd, rtol=0, atol=1e-12)
        numpy.testing.assert_allclose(results["N1"], model.combine(ab, cd), rtol=0, atol=1e-12)
        numpy.testing.assert_allclose(results["N2"], self.grid_a, rtol=0, atol=1e-12)

    def test_branches_are_propagated_before_combination(self):
        tree = get_tree("((A:2,B:3):1,C:4);")
        tip_grids = {"A": self.grid_a, "B": self.grid_b, "C": self.grid_a}
        alpha, beta = 0.6, 0.9
        results = reconstruct.reconstruct(tree, tip_grids, self.environment, alpha, beta)
        ab = model.combine(
                model.propagate(self.grid_a, self.environment, alpha, beta, 2),
                model.propagate(self.grid_b, self.environment, alpha, beta, 3))
        root = model.combine(
                model.propagate(ab, self.environment, alpha, beta, 1),
                model.propagate(self.grid_a, self.environment, alpha, beta, 4))
        self.assertEqual(list(results.keys()), ["N2", "N1"])
        numpy.testing.assert_allclose(results["N2"], ab, rtol=0, atol=1e-9)
        numpy.testing.assert_allclose(results["N1"], root, rtol=0, atol=1e-9)

    def test_reconstructor_state(self):
        tree = get_tree("((A:2,B:3):1,C:4);")
        tip_grids = {"A": self.grid_a, "B": self.grid_b, "C": self.grid_a}
        reconstructor = reconstruct.RangeReconstructor(
                environment=self.environment,
                alpha=0.5,
                beta=0.5,
                run_logger=self.logger)
        reconstructor.run(tree, tip_grids)
        self.assertEqual(list(reconstructor.node_states.keys()), ["A", "B", "N2", "C", "N1"])
        self.assertEqual(dict(reconstructor.branch_steps), {"A": 2, "B": 3, "N2": 1, "C": 4})
        self.assertEqual(reconstructor.root_label, "N1")
        self.assertIs(reconstructor.root_state, reconstructor.node_states["N1"])
        self.assertIsNone(reconstructor.current_node)

    def test_internal_node_labels_are_kept(self):
        tree = get_tree("((A:1,B:1)x:1,(C:1,D:1)y:1)r;")
        tip_grids = dict((k, self.grid_a) for k in "ABCD")
        results = reconstruct.reconstruct(tree, tip_grids, self.environment, 0.5, 0.5)
        self.assertEqual(list(results.keys()), ["x", "y", "r"])

    def test_generated_labels_skip_leaf_labels(self):
        tree = get_tree("(N1:1,N2:1);")
        reconstructor = reconstruct.RangeReconstructor(
                environment=self.environment,
                run_logger=self.logger)
        results = reconstructor.run(tree, {"N1": self.grid_a, "N2": self.grid_b})
        self.assertEqual(list(results.keys()), ["N3"])
        self.assertEqual(reconstructor.root_label, "N3")
        expected = model.combine(
                model.propagate(self.grid_a, self.environment, 0.5, 0.5, 1),
                model.propagate(self.grid_b, self.environment, 0.5, 0.5, 1))
        numpy.testing.assert_allclose(results["N3"], expected, rtol=0, atol=1e-12)

    def test_repeated_support_values_as_internal_labels(self):
        tree = get_tree("((A:1,B:1)100:1,(C:1,D:1)100:1);")
        tip_grids = {"A": self.grid_a, "B": self.grid_b, "C": self.grid_a, "D": self.grid_b}
        results = reconstruct.reconstruct(tree, tip_grids, self.environment, 0.5, 0.5)
        self.assertEqual(list(results.keys()), ["100", "N2", "N1"])
        numpy.testing.assert_allclose(results["100"], results["N2"], rtol=0, atol=1e-12)

    def test_internal_label_shared_with_leaf(self):
        tree = get_tree("((A:1,B:1)A:1,C:1);")
        tip_grids = {"A": self.grid_a, "B": self.grid_b, "C": self.grid_a}
        results = reconstruct.reconstruct(tree, tip_grids, self.environment, 0.5, 0.5)
        self.assertEqual(list(results.keys()), ["N2", "N1"])

    def test_time_step_scales_branch_lengths(self):
        tree = get_tree("(A:1.0,B:2.0);")
        reconstructor = reconstruct.RangeReconstructor(
                environment=self.environment,
                time_step=0.5,
                run_logger=self.logger)
        reconstructor.run(tree, {"A": self.grid_a, "B": self.grid_b})
        self.assertEqual(dict(reconstructor.branch_steps), {"A": 2, "B": 4})

    def test_branch_lengths_are_rounded(self):
        tree = get_tree("(A:2.2,B:2.7);")
        reconstructor = reconstruct.RangeReconstructor(
                environment=self.environment,
                run_logger=self.logger)
        reconstructor.run(tree, {"A": self.grid_a, "B": self.grid_b})
        self.assertEqual(dict(reconstructor.branch_steps), {"A": 2, "B": 3})

    def test_step_count_function(self):
        tree = get_tree("(A:1.5,B:3);")
        reconstructor = reconstruct.RangeReconstructor(
                environment=self.environment,
                steps_per_branch=lambda length: int(length * 10),
                run_logger=self.logger)
        reconstructor.run(tree, {"A": self.grid_a, "B": self.grid_b})
        self.assertEqual(dict(reconstructor.branch_steps), {"A": 15, "B": 30})

    def test_step_count_mapping(self):
        tree = get_tree("((A:1,B:2):3,C:4);")
        steps = {"A": 7, "B": 0, 3.0: 2, "C": 1}
        reconstructor = reconstruct.RangeReconstructor(
                environment=self.environment,
                steps_per_branch=steps,
                run_logger=self.logger)
        reconstructor.run(tree, {"A": self.grid_a, "B": self.grid_b, "C": self.grid_a})
        self.assertEqual(dict(reconstructor.branch_steps), {"A": 7, "B": 0, "N2": 2, "C": 1})

    def test_missing_step_count(self):
        tree = get_tree("(A:1,B:2);")
        with self.assertRaises(ValueError):
            reconstruct.reconstruct(tree, {"A": self.grid_a, "B": self.grid_b}, self.environment, 0.5, 0.5,
                    steps_per_branch={"A": 1})

    def test_non_integral_step_count(self):
        tree = get_tree("(A:1,B:2);")
        with self.assertRaises(ValueError):
            reconstruct.reconstruct(tree, {"A": self.grid_a, "B": self.grid_b}, self.environment, 0.5, 0.5,
                    steps_per_branch=lambda length: length / 3.0)

    def test_negative_step_count(self):
        tree = get_tree("((A:1,B:-2):1,C:1);")
        with self.assertRaises(model.NegativeStepCountException) as cm:
            reconstruct.reconstruct(tree, {"A": self.grid_a, "B": self.grid_b, "C": self.grid_a},
                    self.environment, 0.5, 0.5)
        self.assertEqual(cm.exception.label, "B")
        self.assertEqual(cm.exception.nsteps, -2)

    def test_negative_step_count_reported_before_propagation(self):
        tree = get_tree("((A:1,B:1):1,C:-1);")
        # an all-zero tip would fail on combination if propagation started
        tip_grids = {"A": numpy.zeros((5, 5)), "B": self.grid_b, "C": self.grid_a}
        with self.assertRaises(model.NegativeStepCountException):
            reconstruct.reconstruct(tree, tip_grids, self.environment, 0.5, 0.5)

    def test_polytomy(self):
        tree = get_tree("(A:1,B:1,C:1);")
        tip_grids = {"A": self.grid_a, "B": self.grid_b, "C": self.grid_a}
        with self.assertRaises(reconstruct.InvalidTopologyException):
            reconstruct.reconstruct(tree, tip_grids, self.environment, 0.5, 0.5)

    def test_unary_node(self):
        tree = get_tree("((A:1):1,B:1);")
        with self.assertRaises(reconstruct.InvalidTopologyException):
            reconstruct.reconstruct(tree, {"A": self.grid_a, "B": self.grid_b}, self.environment, 0.5, 0.5)

    def test_cycle(self):
        root = CyclicNode("root")
        a = CyclicNode("a")
        b = CyclicNode("b")
        root._child_nodes = [a, b]
        a._child_nodes = [root, b]
        reconstructor = reconstruct.RangeReconstructor(environment=self.environment, run_logger=self.logger)
        with self.assertRaises(reconstruct.InvalidTopologyException):
            reconstructor.run(root, {})

    def test_missing_tip_grid(self):
        tree = get_tree("((A:1,B:1):1,C:1);")
        with self.assertRaises(reconstruct.InvalidTopologyException):
            reconstruct.reconstruct(tree, {"A": self.grid_a, "B": self.grid_b}, self.environment, 0.5, 0.5)

    def test_duplicate_leaf_labels(self):
        tree = get_tree("(A:1,B:1);")
        tree.find_node_with_taxon_label("B").taxon.label = "A"
        with self.assertRaises(reconstruct.InvalidTopologyException):
            reconstruct.reconstruct(tree, {"A": self.grid_a}, self.environment, 0.5, 0.5)

    def test_tip_grid_dimension_mismatch(self):
        tree = get_tree("(A:1,B:1);")
        with self.assertRaises(model.DimensionMismatchException):
            reconstruct.reconstruct(tree, {"A": self.grid_a, "B": numpy.ones((5, 4))}, self.environment, 0.5, 0.5)

    def test_negative_tip_values(self):
        tree = get_tree("(A:1,B:1);")
        grid = self.grid_b.copy()
        grid[0, 0] = -1.0
        with self.assertRaises(ValueError):
            reconstruct.reconstruct(tree, {"A": self.grid_a, "B": grid}, self.environment, 0.5, 0.5)

    def test_all_zero_tip_grid(self):
        tree = get_tree("((A:2,B:1):1,C:1);")
        tip_grids = {"A": numpy.zeros((5, 5)), "B": self.grid_b, "C": self.grid_a}
        with self.assertRaises(model.DegenerateNormalizationException) as cm:
            reconstruct.reconstruct(tree, tip_grids, self.environment, 0.5, 0.5)
        self.assertEqual(cm.exception.label, "A")
        self.assertIn("N2", str(cm.exception))

    def test_out_of_range_parameters_warn(self):
        logger = utility.get_quiet_logger("phylorange-test-rates")
        with self.assertLogs("phylorange-test-rates", level="WARNING") as cm:
            reconstructor = reconstruct.RangeReconstructor(
                    environment=self.environment,
                    alpha=1.5,
                    beta=-0.1,
                    run_logger=logger)
        self.assertEqual(len(cm.output), 2)
        tree = get_tree("(A:1,B:1);")
        results = reconstructor.run(tree, {"A": self.grid_a, "B": self.grid_b})
        self.assertIn("N1", results)

    def test_unused_tip_grids_warn(self):
        logger = utility.get_quiet_logger("phylorange-test-tips")
        tree = get_tree("(A:1,B:1);")
        tip_grids = {"A": self.grid_a, "B": self.grid_b, "Z": self.grid_a}
        with self.assertLogs("phylorange-test-tips", level="WARNING") as cm:
            reconstruct.reconstruct(tree, tip_grids, self.environment, 0.5, 0.5, run_logger=logger)
        self.assertTrue(any("'Z'" in line for line in cm.output))

    def test_configuration_errors(self):
        with self.assertRaises(TypeError):
            reconstruct.RangeReconstructor(alpha=0.5, run_logger=self.logger)
        with self.assertRaises(TypeError):
            reconstruct.RangeReconstructor(environment=self.environment, gamma=0.5, run_logger=self.logger)
        with self.assertRaises(ValueError):
            reconstruct.RangeReconstructor(environment=self.environment, time_step=0, run_logger=self.logger)
        with self.assertRaises(ValueError):
            reconstruct.RangeReconstructor(environment=-self.environment, run_logger=self.logger)

    def test_reconstructor_can_be_rerun(self):
        reconstructor = reconstruct.RangeReconstructor(environment=self.environment, run_logger=self.logger)
        results1 = reconstructor.run(get_tree("(A:1,B:1);"), {"A": self.grid_a, "B": self.grid_b})
        results2 = reconstructor.run(get_tree("(B:1,A:1);"), {"A": self.grid_a, "B": self.grid_b})
        numpy.testing.assert_allclose(results1["N1"], results2["N1"], rtol=0, atol=1e-12)
        self.assertEqual(list(reconstructor.node_states.keys()), ["B", "A", "N1"])

class SweepRateParametersTestCase(unittest.TestCase):

    def setUp(self):
        self.logger = utility.get_quiet_logger("phylorange-test-sweep")
        self.environment = numpy.ones((4, 4))
        self.grid = numpy.zeros((4, 4))
        self.grid[1:3, 1:3] = 1.0
        self.tree = get_tree("(A:1,B:1);")
        self.tip_grids = {"A": self.grid, "B": self.grid}

    def test_one_row_per_combination(self):
        df = reconstruct.sweep_rate_parameters(
                self.tree,
                self.tip_grids,
                self.environment,
                alphas=[0.25, 0.5],
                betas=[0.5, 1.0],
                run_logger=self.logger)
        self.assertEqual(len(df), 4)
        self.assertEqual(list(df["alpha"]), [0.25, 0.25, 0.5, 0.5])
        self.assertEqual(list(df["beta"]), [0.5, 1.0, 0.5, 1.0])
        for value in df["max"]:
            self.assertAlmostEqual(value, 1.0)

    def test_degenerate_combinations(self):
        with self.assertRaises(model.DegenerateNormalizationException):
            reconstruct.sweep_rate_parameters(
                    self.tree,
                    self.tip_grids,
                    self.environment,
                    alphas=[0.0],
                    betas=[0.0],
                    run_logger=self.logger)
        with self.assertLogs("phylorange-test-sweep", level="WARNING"):
            df = reconstruct.sweep_rate_parameters(
                    self.tree,
                    self.tip_grids,
                    self.environment,
                    alphas=[0.0, 0.5],
                    betas=[0.0],
                    record_degenerate=True,
                    run_logger=self.logger)
        self.assertEqual(len(df), 2)
        self.assertEqual(df["degenerate.lineage"][0], "A")
        self.assertTrue(numpy.isnan(df["max"][0]))
        self.assertAlmostEqual(df["max"][1], 1.0)

if __name__ == "__main__":
    unittest.main()
