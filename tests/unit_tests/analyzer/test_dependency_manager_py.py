from tests.unit_tests.helper import BaseTestCase
from suitewatch.analyzer.dependency_map.dependency_types import GraphError
from suitewatch.analyzer.dependency_map.python.dependency_manager_py import DependencyManagerPy

EXCLUDE_GENERATED = r"_generated\.py$"


class TestDependencyManagerPy(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.make_project()
        self.write_file("gamma/g.py", "import beta.b\n")
        self.write_file("gamma/test_gamma.py", "from gamma import g\n")
        self.dm = DependencyManagerPy(EXCLUDE_GENERATED)

    # =============  depth  ==============

    def test_depth_zero_only_own_files(self):
        deps = self.dm.dependencies(self.suite("beta"), 0)
        self.assertEqual(deps.packages, [self.path("beta")])
        self.assertEqual(deps.all_files, {self.path("beta/b.py"), self.path("beta/test_beta.py")})
        self.assertEqual(deps.dependency_count, 0)

    def test_depth_one_includes_imported_package(self):
        deps = self.dm.dependencies(self.suite("beta"), 1)
        self.assertEqual(dict(deps.depths), {self.path("beta"): 0, self.path("alpha"): 1})
        self.assertIn(self.path("alpha/a.py"), deps.all_files)
        self.assertEqual(deps.dependency_count, 1)

    def test_depth_bounds_transitive_imports(self):
        deps_1 = self.dm.dependencies(self.suite("gamma"), 1)
        self.assertNotIn(self.path("alpha"), deps_1.depths)
        deps_2 = self.dm.dependencies(self.suite("gamma"), 2)
        self.assertEqual(deps_2.depths[self.path("alpha")], 2)
        self.assertEqual(deps_2.packages, [self.path("gamma"), self.path("beta"), self.path("alpha")])

    def test_negative_depth_is_rejected(self):
        with self.assertRaises(ValueError):
            self.dm.dependencies(self.suite("beta"), -1)

    # =============  cycles / resolution  ==============

    def test_import_cycle_is_visited_once(self):
        self.write_file("alpha/cycle.py", "from gamma import g\n")
        deps = self.dm.dependencies(self.suite("gamma"), 10)
        self.assertEqual(sorted(deps.depths), sorted([self.path("gamma"), self.path("beta"), self.path("alpha")]))
        all_files = [path for paths in deps.files.values() for path in paths]
        self.assertEqual(len(all_files), len(set(all_files)))

    def test_relative_import(self):
        self.write_file("pkg/__init__.py")
        self.write_file("pkg/sub/__init__.py")
        self.write_file("pkg/sub/test_sub.py", "from .. import helpers\nfrom ..tools import thing\n")
        self.write_file("pkg/helpers.py", "X = 1\n")
        self.write_file("pkg/tools/thing.py", "Y = 2\n")
        deps = self.dm.dependencies(self.suite("pkg/sub"), 1)
        self.assertEqual(deps.depths[self.path("pkg")], 1)
        self.assertEqual(deps.depths[self.path("pkg/tools")], 1)

    def test_src_layout_and_stdlib(self):
        self.write_file("src/lib/core.py", "import os\nimport json\n")
        self.write_file("delta/test_delta.py", "import os\nimport lib.core\nfrom typing import Any\n")
        deps = self.dm.dependencies(self.suite("delta"), 3)
        self.assertEqual(dict(deps.depths), {self.path("delta"): 0, self.path("src/lib"): 1})

    # =============  exclusion  ==============

    def test_excluded_files_are_dropped(self):
        self.write_file("alpha/schema_generated.py", "import gamma\n")
        deps = self.dm.dependencies(self.suite("alpha"), 2)
        self.assertNotIn(self.path("alpha/schema_generated.py"), deps.all_files)
        # 除外ファイルのimportは辿らない
        self.assertNotIn(self.path("gamma"), deps.depths)

    def test_non_python_files_are_part_of_the_set(self):
        self.write_file("alpha/fixture.json", "{}")
        deps = self.dm.dependencies(self.suite("alpha"), 0)
        self.assertIn(self.path("alpha/fixture.json"), deps.all_files)

    # =============  errors  ==============

    def test_missing_package_raises_graph_error(self):
        with self.assertRaises(GraphError):
            self.dm.dependencies(self.suite("missing"), 1)

    def test_syntax_error_raises_graph_error(self):
        self.write_file("alpha/broken.py", "def broken(:\n")
        with self.assertRaises(GraphError) as cm:
            self.dm.dependencies(self.suite("beta"), 2)
        self.assertEqual(cm.exception.path, self.path("alpha/broken.py"))

    def test_syntax_error_beyond_depth_is_not_parsed(self):
        self.write_file("alpha/broken.py", "def broken(:\n")
        deps = self.dm.dependencies(self.suite("beta"), 1)
        self.assertIn(self.path("alpha/broken.py"), deps.all_files)

    # =============  graph cache  ==============

    def test_graph_is_refreshed_when_imports_change(self):
        self.dm.dependencies(self.suite("alpha"), 1)
        self.assertEqual(list(self.dm.graph.successors(self.path("alpha"))), [])
        self.write_file("alpha/a.py", "import gamma.g\n")
        self.touch("alpha/a.py")
        deps = self.dm.dependencies(self.suite("alpha"), 1)
        self.assertIn(self.path("gamma"), deps.depths)
        self.assertEqual(list(self.dm.graph.successors(self.path("alpha"))), [self.path("gamma")])

    def test_package_created_after_analysis_becomes_dependency(self):
        self.write_file("beta/test_helpers.py", "import helpers\n")
        deps = self.dm.dependencies(self.suite("beta"), 1)
        self.assertNotIn(self.path("helpers"), deps.depths)

        # betaのファイルは変わらないが、import先が後から作られる
        self.write_file("helpers/h.py", "H = 1\n")
        deps = self.dm.dependencies(self.suite("beta"), 1)
        self.assertEqual(deps.depths[self.path("helpers")], 1)
        self.assertIn(self.path("helpers"), set(self.dm.graph.successors(self.path("beta"))))

    def test_removed_import_target_drops_edge(self):
        self.write_file("helpers/h.py", "H = 1\n")
        self.write_file("beta/test_helpers.py", "import helpers\n")
        self.assertIn(self.path("helpers"), self.dm.dependencies(self.suite("beta"), 1).depths)

        self.remove_tree("helpers")
        deps = self.dm.dependencies(self.suite("beta"), 1)
        self.assertNotIn(self.path("helpers"), deps.depths)

    def test_find_dependents(self):
        self.dm.dependencies(self.suite("gamma"), 2)
        self.assertEqual(self.dm.find_dependents(self.path("alpha")), {self.path("beta"), self.path("gamma")})
        self.assertEqual(self.dm.find_dependents(self.path("unknown")), set())
