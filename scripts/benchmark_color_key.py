from __future__ import annotations

import argparse
import time

from PIL import Image, ImageDraw

from bgremover.domain.color_key import ColorKeyRemover
from bgremover.infrastructure.image_codec import from_pil_image


def make_image(size: int) -> Image.Image:
    img = Image.new('RGBA', (size, size), 'white')
    draw = ImageDraw.Draw(img)
    margin = size // 6
    draw.rectangle((margin, margin, size - margin, size - margin), fill='green')
    return img


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument('--size', type=int, default=2048)
    parser.add_argument('--count', type=int, default=10)
    parser.add_argument('--tolerance', type=float, default=30.0)
    args = parser.parse_args()

    image = from_pil_image(make_image(args.size))
    remover = ColorKeyRemover()
    started = time.perf_counter()

    for _ in range(args.count):
        remover.remove(image, args.tolerance)

    elapsed = time.perf_counter() - started
    print({
        'runs': args.count,
        'size': f'{args.size}x{args.size}',
        'elapsed_sec': round(elapsed, 3),
        'ms_per_run': round(elapsed / args.count * 1000, 1),
    })


if __name__ == '__main__':
    main()
