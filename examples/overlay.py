import logging
import numpy as np
from PIL import Image

from cudautils import cudaAllocMapped, cudaDeviceSynchronize, cudaFont

log = logging.getLogger(__name__)

logging.basicConfig(level=logging.INFO)

def test(path, out, text):
    '''
    draw text on an image through zero-copy memory; the image never gets copied to the GPU
    '''
    img = Image.open(path).convert('RGBA')
    w, h = img.size

    # the font engine works on float4 RGBA images
    mem = cudaAllocMapped(w * h * 4 * 4)
    arr = mem.host_array(np.float32).reshape(h, w, 4)
    arr[:] = np.asarray(img, dtype=np.float32)

    with cudaFont() as font:
        font.Overlay(mem, w, h, text, 5, 5, font.Lime)
        font.Overlay(mem, w, h, 'cudautils', 5, 40, (255, 255, 255, 128))

    cudaDeviceSynchronize()
    log.info(f'writing {w}x{h} image to {out}')
    Image.fromarray(np.clip(arr, 0, 255).astype(np.uint8)).save(out)

if __name__ == '__main__':
    import sys
    _, path, out, text = sys.argv
    test(path, out, text)
