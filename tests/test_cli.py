"""
Tests for the ``latentkit`` command line.
"""
import pytest

from latentkit import cli
from latentkit.errors import Cancelled


@pytest.fixture
def stub_pipeline(monkeypatch, make_pipeline):
    built = {}

    def load(args):
        built['args'] = args
        built['pipeline'] = make_pipeline()
        return built['pipeline']

    monkeypatch.setattr(cli, 'load_pipeline', load)
    return built


def _argv(tmp_path, *extra):
    return ['a red cube', '--resource-path', str(tmp_path),
            '--output-path', str(tmp_path / 'out'),
            '--seed', '42', '--step-count', '2', *extra]


def test_image_name():
    assert cli.image_name('a red cube', 42) == 'a_red_cube.42.final.png'
    assert cli.image_name('a/b  c', 1, step=5) == 'a_b_c.1.5.png'


def test_generates_png(tmp_path, stub_pipeline, capsys):
    assert cli.main(_argv(tmp_path)) == cli.EXIT_OK
    assert (tmp_path / 'out' / 'a_red_cube.42.final.png').is_file()
    assert 'Saved' in capsys.readouterr().out


def test_options_reach_pipeline(tmp_path, stub_pipeline):
    assert cli.main(_argv(tmp_path, '--reduce-memory', '--scheduler', 'ddim',
                          '--image-count', '2')) == 0
    args = stub_pipeline['args']
    assert args.reduce_memory and args.scheduler == 'ddim'
    out = tmp_path / 'out'
    assert (out / 'a_red_cube.42.final.png').is_file()
    assert (out / 'a_red_cube.43.final.png').is_file()


def test_save_every_writes_intermediates(tmp_path, stub_pipeline):
    assert cli.main(_argv(tmp_path, '--save-every', '1')) == 0
    out = tmp_path / 'out'
    assert (out / 'a_red_cube.42.1.png').is_file()
    assert (out / 'a_red_cube.42.2.png').is_file()


def test_filtered_image_not_saved(tmp_path, stub_pipeline, backend, capsys):
    backend.unsafe = {0}
    assert cli.main(_argv(tmp_path)) == 0
    assert not (tmp_path / 'out' / 'a_red_cube.42.final.png').exists()
    assert 'filtered' in capsys.readouterr().err


@pytest.mark.parametrize('extra', [
    ['--step-count', '0'],
    ['--guidance-scale', '-2'],
    ['--scheduler', 'lms'],
    ['--save-every', '-1'],
    ['--image', 'missing.png'],
])
def test_usage_errors(tmp_path, stub_pipeline, extra):
    assert cli.main(_argv(tmp_path, *extra)) == cli.EXIT_USAGE
    assert 'pipeline' not in stub_pipeline


def test_missing_resource_path_is_usage_error():
    assert cli.main(['a red cube']) == cli.EXIT_USAGE


def test_missing_models_is_pipeline_error(tmp_path, capsys):
    assert cli.main(_argv(tmp_path)) == cli.EXIT_FAILURE
    assert 'ResourceUnavailable' in capsys.readouterr().err


def test_cancel_exit_code(tmp_path, monkeypatch, make_pipeline):
    pipeline = make_pipeline()

    def generate(request, progress=None, cancel=None):
        raise Cancelled(0)

    monkeypatch.setattr(pipeline, 'generate', generate)
    monkeypatch.setattr(cli, 'load_pipeline', lambda args: pipeline)
    assert cli.main(_argv(tmp_path)) == cli.EXIT_INTERRUPTED
