import torch
from PIL import Image

from cudautils import cudaFont

import sys

_, device, out = sys.argv

with torch.cuda.device(int(device)):
    # tensors expose __cuda_array_interface__, so they can be passed to Overlay directly
    src = torch.zeros((480, 640, 4), dtype=torch.float32, device='cuda')
    src[..., 3] = 255
    dst = torch.empty_like(src)

    font = cudaFont()
    font.Overlay(src, 640, 480, 'rendered into a separate tensor', 10, 10, font.Yellow, output=dst)
    torch.cuda.synchronize()

    arr = dst.clamp(0, 255).to(torch.uint8).cpu().numpy()
    Image.fromarray(arr).save(out)
