import os
import stat
import tempfile
import unittest
from pathlib import Path

from fakes import FakeTools, make_workspace

from saucepan.assets import resolve_assets
from saucepan.errors import TemplateMissing
from saucepan.models import BuildRequest
from saucepan.staging import build_staging_tree, render_template


class BuildStagingTreeTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tempdir = tempfile.TemporaryDirectory()
        self.root = Path(self._tempdir.name)
        self.staging = self.root / "staging"
        self.staging.mkdir()

    def tearDown(self) -> None:
        self._tempdir.cleanup()

    def _stage(self, request: BuildRequest, **workspace_options):
        settings = make_workspace(self.root / "project", **workspace_options)
        (settings.roms_dir / f"{request.rom_name}.nes").write_bytes(b"NES\x1a rom")
        (settings.cores_dir / "fceumm_libretro.so").write_bytes(b"\x7fELF core")
        (settings.cores_dir / settings.default_core).write_bytes(b"\x7fELF default")
        self.settings = settings
        assets = resolve_assets(request, settings)
        tools = FakeTools()
        return build_staging_tree(assets, request, settings, self.staging, tools=tools), tools

    def test_fixed_directories_created(self) -> None:
        self._stage(BuildRequest("Zelda II", "zelda2", stock_core="nes"))

        for name in ("boxart", "emu", "roms", "save"):
            self.assertTrue((self.staging / name).is_dir(), name)
        self.assertEqual([], list((self.staging / "save").iterdir()))

    def test_stock_core_is_not_bundled(self) -> None:
        tree, _ = self._stage(BuildRequest("Zelda II", "zelda2", stock_core="nes"))

        self.assertIsNone(tree.core)
        self.assertEqual([], list((self.staging / "emu").iterdir()))
        script = (self.staging / "exec.sh").read_text()
        self.assertIn("run /emulator/quicknes_libretro.so ./roms/zelda2.nes", script)

    def test_custom_core_is_bundled(self) -> None:
        tree, _ = self._stage(BuildRequest("Zelda II", "zelda2", core="fceumm_libretro.so"))

        self.assertEqual(self.staging / "emu" / "fceumm_libretro.so", tree.core)
        self.assertEqual(b"\x7fELF core", tree.core.read_bytes())
        self.assertIn("run ./emu/fceumm_libretro.so ./roms/zelda2.nes", (self.staging / "exec.sh").read_text())

    def test_default_core_is_bundled(self) -> None:
        tree, _ = self._stage(BuildRequest("Zelda II", "zelda2"))

        self.assertEqual(b"\x7fELF default", (self.staging / "emu" / "mame2003_plus_libretro.so").read_bytes())
        self.assertIn("./emu/mame2003_plus_libretro.so", tree.launch_script.read_text())

    def test_rom_copied_with_original_extension(self) -> None:
        tree, _ = self._stage(BuildRequest("Zelda II", "zelda2", stock_core="nes"))

        self.assertEqual(self.staging / "roms" / "zelda2.nes", tree.rom)
        self.assertEqual(b"NES\x1a rom", tree.rom.read_bytes())

    def test_no_bezel_uses_plain_launch_template(self) -> None:
        tree, _ = self._stage(BuildRequest("Zelda II", "zelda2", stock_core="nes"))

        self.assertIsNone(tree.bezel)
        self.assertFalse((self.staging / "boxart" / "addon.z.png").exists())
        self.assertEqual(self.settings.launch_template, tree.launch_template)
        self.assertNotIn("--bezel", tree.launch_script.read_text())

    def test_bezel_uses_bezel_launch_template(self) -> None:
        tree, tools = self._stage(BuildRequest("Zelda II", "zelda2", stock_core="nes"), default_bezel=True)

        self.assertEqual(self.staging / "boxart" / "addon.z.png", tree.bezel)
        self.assertEqual(b"1280x720:default bezel", tree.bezel.read_bytes())
        self.assertEqual(self.settings.bezel_launch_template, tree.launch_template)
        self.assertIn("--bezel", tree.launch_script.read_text())

    def test_boxart_resized_and_linked_as_title(self) -> None:
        tree, tools = self._stage(BuildRequest("Zelda II", "zelda2", stock_core="nes"))

        self.assertEqual(b"222x306:default boxart", tree.boxart.read_bytes())
        title = self.staging / "title.png"
        self.assertTrue(title.is_symlink())
        self.assertEqual("boxart/boxart.png", os.readlink(title))
        self.assertEqual(tree.boxart.read_bytes(), title.read_bytes())

    def test_resize_disabled_copies_images(self) -> None:
        tree, tools = self._stage(
            BuildRequest("Zelda II", "zelda2", stock_core="nes", resize=False), default_bezel=True
        )

        self.assertEqual(b"default boxart", tree.boxart.read_bytes())
        self.assertEqual(b"default bezel", tree.bezel.read_bytes())
        self.assertFalse([call for call in tools.calls if call[0] == "resize"])

    def test_no_boxart_at_all(self) -> None:
        tree, _ = self._stage(BuildRequest("Zelda II", "zelda2", stock_core="nes"), default_boxart=False)

        self.assertIsNone(tree.boxart)
        self.assertFalse((self.staging / "title.png").is_symlink())
        self.assertEqual([], list((self.staging / "boxart").iterdir()))

    def test_descriptor_carries_escaped_game_name(self) -> None:
        tree, _ = self._stage(BuildRequest("Ghosts & Goblins", "gng", stock_core="nes"))

        self.assertEqual("<title>Ghosts &amp; Goblins</title>\n", tree.descriptor.read_text())

    def test_launch_script_is_executable(self) -> None:
        tree, _ = self._stage(BuildRequest("Zelda II", "zelda2", stock_core="nes"))

        mode = stat.S_IMODE(tree.launch_script.stat().st_mode)
        self.assertEqual(0o755, mode)

    def test_missing_template_is_fatal(self) -> None:
        settings = make_workspace(self.root / "project")
        (settings.roms_dir / "zelda2.nes").write_bytes(b"rom")
        settings.launch_template.unlink()
        request = BuildRequest("Zelda II", "zelda2", stock_core="nes")

        with self.assertRaises(TemplateMissing):
            build_staging_tree(resolve_assets(request, settings), request, settings, self.staging, tools=FakeTools())


class RenderTemplateTests(unittest.TestCase):
    def test_replaces_every_occurrence(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            template = Path(tmpdir) / "exec.sh"
            template.write_text("CORE_PATH ROM_NAME CORE_PATH\n")

            text = render_template(template, {"CORE_PATH": "/emulator/a.so", "ROM_NAME": "b.zip"})

        self.assertEqual("/emulator/a.so b.zip /emulator/a.so\n", text)


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
