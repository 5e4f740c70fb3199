from __future__ import annotations

import io
from pathlib import Path

from PIL import Image
import pytest

from bgremover.domain.errors import NoInputAvailableError
from bgremover.domain.pixel_buffer import PixelBuffer
from bgremover.infrastructure.object_storage import LocalObjectStorage
from bgremover.presentation import cli
from bgremover.tasks import background_jobs


def _write_png(path: Path) -> Path:
    image = Image.new('RGB', (12, 12), 'white')
    image.paste((0, 0, 255), (3, 3, 9, 9))
    image.save(path, format='PNG')
    return path


def test_remove_writes_png(tmp_path, capsys) -> None:
    source = _write_png(tmp_path / 'in.png')
    target = tmp_path / 'out.png'

    code = cli.main(['remove', str(source), '-o', str(target), '--tolerance', '10'])

    assert code == 0
    assert capsys.readouterr().out.strip() == str(target)
    with Image.open(target) as image:
        assert image.getpixel((0, 0)) == (0, 0, 0, 0)
        assert image.getpixel((6, 6)) == (0, 0, 255, 255)


def test_remove_prints_metrics(tmp_path, capsys) -> None:
    source = _write_png(tmp_path / 'in.png')

    code = cli.main(['remove', str(source), '-o', str(tmp_path / 'out.png'), '--show-metrics'])

    assert code == 0
    assert 'bgremover_removals_succeeded_total' in capsys.readouterr().out


def test_remove_missing_file(tmp_path, capsys) -> None:
    code = cli.main(['remove', str(tmp_path / 'nope.png')])

    assert code == 1
    assert 'No image file' in capsys.readouterr().err


def test_remove_from_clipboard(monkeypatch, tmp_path) -> None:
    monkeypatch.setattr(cli, 'grab_clipboard_image', lambda: PixelBuffer.filled(2, 2, (255, 255, 255, 255)))
    target = tmp_path / 'clip.png'

    assert cli.main(['remove', '--clipboard', '-o', str(target)]) == 0
    assert target.exists()


def test_remove_empty_clipboard(monkeypatch, capsys) -> None:
    def _empty():
        raise NoInputAvailableError('No image found in clipboard')

    monkeypatch.setattr(cli, 'grab_clipboard_image', _empty)

    assert cli.main(['remove', '--clipboard']) == 1
    assert 'No image found in clipboard' in capsys.readouterr().err


@pytest.mark.parametrize('tolerance', ['-1', '101', 'lots'])
def test_remove_rejects_bad_tolerance(tmp_path, tolerance: str) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(['remove', str(tmp_path / 'in.png'), '--tolerance', tolerance])
    assert excinfo.value.code == 2


def test_batch_writes_archive(monkeypatch, tmp_path, capsys) -> None:
    monkeypatch.setattr(background_jobs, 'storage', LocalObjectStorage(tmp_path / 'store'))
    first = _write_png(tmp_path / 'a.png')
    second = _write_png(tmp_path / 'b.png')

    assert cli.main(['batch', str(first), str(second)]) == 0
    archive = Path(capsys.readouterr().out.strip())
    assert archive.name == 'removed-backgrounds.zip'
    assert archive.exists()


def test_cleanup_command(monkeypatch, tmp_path, capsys) -> None:
    from bgremover.tasks import maintenance_jobs

    monkeypatch.setattr(maintenance_jobs, 'storage', LocalObjectStorage(tmp_path))

    assert cli.main(['cleanup', '--older-than', '0']) == 0
    assert 'scanned=0 deleted=0' in capsys.readouterr().out


def test_output_encoding_is_png(tmp_path) -> None:
    source = _write_png(tmp_path / 'in.png')
    target = tmp_path / 'result.png'
    cli.main(['remove', str(source), '-o', str(target), '--mode', 'color'])

    with Image.open(io.BytesIO(target.read_bytes())) as image:
        assert image.format == 'PNG'


def test_remove_reports_oversized_image(monkeypatch, tmp_path, capsys) -> None:
    source = _write_png(tmp_path / 'huge.png')
    monkeypatch.setattr(Image, 'MAX_IMAGE_PIXELS', 10)

    assert cli.main(['remove', str(source), '-o', str(tmp_path / 'out.png')]) == 1
    assert 'too large in pixels' in capsys.readouterr().err


def test_batch_keeps_results_with_clashing_names(monkeypatch, tmp_path, capsys) -> None:
    import zipfile

    monkeypatch.setattr(background_jobs, 'storage', LocalObjectStorage(tmp_path / 'store'))
    (tmp_path / 'a').mkdir()
    (tmp_path / 'b').mkdir()
    first = _write_png(tmp_path / 'a' / 'x.png')
    second = _write_png(tmp_path / 'b' / 'x.png')

    assert cli.main(['batch', str(first), str(second)]) == 0
    with zipfile.ZipFile(capsys.readouterr().out.strip()) as archive:
        assert sorted(archive.namelist()) == ['x-2.png', 'x.png']
