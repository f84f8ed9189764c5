import itertools
import logging
from tqdm import tqdm

from cudautils import cudaMalloc, cudaAllocMapped

logging.basicConfig(level=logging.WARNING)

def test(size, mapped):
    '''
    allocate and drop buffers in a loop; memory usage should stay flat
    '''
    alloc = cudaAllocMapped if mapped else cudaMalloc
    bar = tqdm(itertools.count())
    for i in bar:
        mem = alloc(size)
        bar.set_description(f'{mem!r}')
        del mem

if __name__ == '__main__':
    import sys
    size = int(sys.argv[1])
    mapped = len(sys.argv) > 2 and sys.argv[2] == 'mapped'
    test(size, mapped)
