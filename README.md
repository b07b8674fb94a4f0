# ringmarker

Numerical building blocks for finding and reading concentric-ring fiducial
markers in grayscale images. Images are NumPy arrays indexed `[row, column]`.

## Modules

- `ringmarker.params` – the `Parameters` dataclass holding every detection
  setting with its default (`n_circles` follows from `n_crowns`).
  `load_parameters(path, n_crowns)` reads an XML parameter file and raises
  `ValueError` when it describes a different number of crowns, or
  `FileNotFoundError` when it is missing. `load_override()` reads the file
  named by the `RINGMARKER_PARAMETERS_OVERRIDE` environment variable
  (falling back to `./RingMarkerParametersOverride.xml`) and returns `None`
  when there is none. `Parameters.set_debug_dir` creates the debug directory;
  `Parameters.set_use_cuda(True)` only issues a warning, as there is no GPU
  implementation. The `Weight` enum lists the edge-point weighting schemes.
- `ringmarker.edges` – `EdgePoint` (position and gradient) and
  `EdgePointCollection`, which indexes the edge points of one image by pixel
  and by index, and keeps for each point its before/after links, its voter
  list and two processed flags.
- `ringmarker.fitting` – the `Ellipse` record, direct least-squares
  `fit_ellipse` (at least five points), algebraic `fit_circle` (at least
  three points) and `inner_prod_min`, which measures the spread of gradient
  directions over a set of edge points.
- `ringmarker.sampling` – `ImageCut`, a segment along which a 1D signal is
  sampled, together with `apply_homography`, `get_pixel_bilinear` (bilinear
  value, halved), `compute_median`, `blur_signal`, `convolve_cut` and
  `create_rectified_cut_image`.
- `ringmarker.cuts` – `cut_interpolated` and
  `extract_signal_using_homography` to sample a cut plainly or rectified by a
  homography, `get_signals`, `collect_cuts` from a center to outer points,
  `outer_edge_refinement` of a cut's stop point, `cost_select_cut` and
  `select_cuts_uniform`.
- `ringmarker.scoring` – the robust sample distance `dis`,
  `orazio_distance_robust`, which scores each readable cut against a bank of
  radius ratios, and `vote_identity`, which picks the marker that won the
  most cuts and its mean likelihood.

## Installation

```
pip install .
```

## Example

```python
import math
from ringmarker.fitting import fit_ellipse

points = [(10 + 4 * math.cos(t), 5 + 2 * math.sin(t))
          for t in (i * 2 * math.pi / 12 for i in range(12))]
ellipse = fit_ellipse(points)
print(ellipse.center, ellipse.a, ellipse.b, ellipse.angle)
```

`fit_ellipse` needs at least five points, returns the shorter semi-axis as
`a`, and raises `ValueError` when the points are degenerate.

## What the package does not do

It is a library of parts, not a detector. It has no command, builds no image
pyramid, runs no edge detection or voting, and does not search for the
optimal imaged marker center: a caller supplies edge points, ellipses,
homographies and cuts, and combines these functions into a pipeline itself.

## Running the tests

```
pip install .[test]
pytest
```