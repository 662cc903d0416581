from .bilinear_sampler import PaddingMode, BilinearSampler, bilinear_sample
