import numpy as np
import scipy.sparse as sp


def _membership(partition, n_groups=None):
    s = partition.size
    n_groups = int(np.max(partition)) + 1 if n_groups is None else n_groups
    return sp.csr_matrix(
        (np.ones(s, dtype='float64'), (partition, np.arange(0, s))), shape=(n_groups, s)
    )


def cool_sum(arr, partition, n_groups=None):
    """Efficiently sum the elements of an array arr over a partition u. The number of classes in the partition is
    implicitly defined from the values of u, unless n_groups is given.

    Parameters
    ----------
        arr: Array of dimensions (n, ).
        partition: Partition of the circles in the form of an (n, ) array with k different integer values.
        n_groups: Optional number of classes, for partitions whose last classes are empty.

    Returns
    -------
        group_sum: A (k, ) array with the values summed over the k partition values.
    """
    partition = np.asarray(partition)
    if partition.size == 0:
        return np.zeros(0 if n_groups is None else n_groups)
    umat = _membership(partition, n_groups)
    return np.asarray(umat @ np.asarray(arr, dtype='float64')).ravel()


def cool_count(partition, n_groups=None):
    """Number of members of each partition class."""
    partition = np.asarray(partition)
    return cool_sum(np.ones(partition.size), partition, n_groups).astype(int)


def cool_max(arr, partition, n_groups=None):
    """Efficiently calculate the max of all elements of an array arr of **positive** reals over a partition u.

    Parameters
    ----------
        arr: Array of dimensions (n, ).
        partition: Partition of the circles in the form of an (n, ) array with k different integer values.

    Returns
    -------
        group_max: A (k, ) array with the values maximized over the k partition values.
    """
    partition = np.asarray(partition)
    s = partition.size
    n_groups = int(np.max(partition)) + 1 if n_groups is None else n_groups
    umat = sp.csr_matrix((np.asarray(arr, dtype='float64'), (partition, np.arange(0, s))), shape=(n_groups, s))
    result = umat.max(axis=-1)
    return np.atleast_1d(np.squeeze(result.toarray()))


def cool_area_diameter(radii, partition, padding=0.0, efficiency=0.85, n_groups=None):
    """Diameter of the disc whose area holds all circles of each class at the given fill efficiency.

    Parameters
    ----------
        radii: Array of dimensions (n, ) with circle radii.
        partition: Partition of the circles in the form of an (n, ) array with k different integer values.
        padding: Clearance added to every radius.
        efficiency: Assumed fraction of the disc actually covered by circles.

    Returns
    -------
        group_diameter: A (k, ) array with the estimated diameters.
    """
    padded = np.asarray(radii, dtype='float64') + padding
    sum_r2 = cool_sum(padded ** 2, partition, n_groups)
    return 2.0 * np.sqrt(sum_r2 / efficiency)
