import logging

import numpy as np

logger = logging.getLogger(__name__)


# Make sure that every node is evaluated after all of its predecessors
def validate_evaluation_order(graph, verbose=True):
    already_evaluated = set()
    order = graph.evaluation_order()
    for node in order:
        for src in node.inputs:
            if src not in already_evaluated:
                if verbose:
                    logger.warning(
                        f"Invalid order: {node.name} evaluated before its fanin {src.name}"
                    )
                    logger.warning(f"Complete ordering {[n.name for n in order]}")
                return False
        already_evaluated.add(node)
    return True


def evaluate(graph, inputs, output_index=0):
    graph.set_inputs(inputs)
    graph.traverse()
    return graph.get_output(output_index)


# Central difference estimate of d(output)/d(param k). The parameter is
# restored and the graph re-traversed before returning.
def finite_difference(graph, inputs, k, eps=1e-4, output_index=0):
    param = graph.param_at(k)
    w = param.get_value()
    try:
        param.set_value(w + eps)
        f_plus = evaluate(graph, inputs, output_index)
        param.set_value(w - eps)
        f_minus = evaluate(graph, inputs, output_index)
    finally:
        param.set_value(w)
    evaluate(graph, inputs, output_index)
    return (f_plus - f_minus) / (2 * eps)


def analytic_derivatives(graph, inputs, output_index=0):
    evaluate(graph, inputs, output_index)
    graph.back_prop(output_index, 1.0)
    return np.array(
        [graph.param_at(k).get_derivative(output_index) for k in range(graph.param_count())]
    )


def check_gradients(graph, inputs, eps=1e-4, rtol=1e-3, atol=1e-7, output_index=0):
    analytic = analytic_derivatives(graph, inputs, output_index)
    numeric = np.array(
        [
            finite_difference(graph, inputs, k, eps, output_index)
            for k in range(graph.param_count())
        ]
    )
    close = np.isclose(analytic, numeric, rtol=rtol, atol=atol)
    for k in np.flatnonzero(~close):
        logger.warning(
            f"Derivative mismatch for {graph.param_at(k).name}: "
            f"back_prop {analytic[k]}, finite difference {numeric[k]}"
        )
    return bool(close.all())
