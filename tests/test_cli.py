# ABOUTME: Test suite for the splatpack command-line interface
# ABOUTME: Runs main() end to end on synthetic and archived splats

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from splatpack.cli import build_parser, main
from splatpack.splat_io import save_npz
from splatpack.synthetic import SyntheticParams, generate_synthetic


def run_cli(argv):
    with pytest.raises(SystemExit) as exc_info:
        main(argv)
    return exc_info.value.code


class TestParser:
    """Argument parsing."""

    def test_defaults(self):
        args = build_parser().parse_args(['scene.npz', 'out'])
        assert args.input == 'scene.npz'
        assert args.output_dir == 'out'
        assert args.quality == 'medium'
        assert args.seed == 1

    def test_bc7_not_offered(self):
        """Block compression needs a compressor object, so it is API only."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(['scene.npz', 'out', '--color-format', 'BC7'])


class TestMain:
    """End-to-end CLI runs."""

    def test_synthetic(self, tmp_path):
        code = run_cli(['--synthetic', '500', '--synthetic-kind', 'grid', str(tmp_path), '--quiet'])
        assert code == 0
        assert (tmp_path / 'synthetic.json').exists()
        assert (tmp_path / 'synthetic_pos.bytes').exists()

    def test_npz_input(self, tmp_path):
        input_path = save_npz(generate_synthetic(SyntheticParams(splat_count=300)), tmp_path / 'scene.npz')
        out = tmp_path / 'out'

        code = run_cli([str(input_path), str(out), '--quality', 'very-high', '--quiet'])
        assert code == 0
        assert (out / 'scene.json').exists()
        # lossless output has no chunk table
        assert not (out / 'scene_chk.bytes').exists()

    def test_custom_name_and_formats(self, tmp_path):
        code = run_cli(['--synthetic', '300', str(tmp_path), '--name', 'custom',
                        '--quality', 'custom', '--sh-format', 'Float16', '--quiet'])
        assert code == 0
        assert (tmp_path / 'custom_shs.bytes').stat().st_size == 300 * 96

    def test_missing_input(self, tmp_path):
        assert run_cli([str(tmp_path / 'missing.npz'), str(tmp_path), '--quiet']) == 1

    def test_very_low_not_offered(self, tmp_path):
        """The BC7 preset is rejected by argparse before any work starts."""
        assert run_cli(['--synthetic', '100', str(tmp_path), '--quality', 'very-low', '--quiet']) == 2
        assert not (tmp_path / 'synthetic.json').exists()

    def test_no_input(self, tmp_path):
        """Without input or --synthetic argparse exits with usage error."""
        assert run_cli([str(tmp_path), '--quiet']) == 2
