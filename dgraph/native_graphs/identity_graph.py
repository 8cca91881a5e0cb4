from dgraph import graph as dgraph_graph
from dgraph import nodes


# output = w * x, a single weight and no bias
def build(w=0.5):
    graph = dgraph_graph.Graph("identity")

    X = nodes.InputNode(name="x")
    W = nodes.ParamNode(w, name="w")
    OUT = nodes.WeightedSumNode([X], [W], name="out")

    graph.add_input_nodes(X)
    graph.add_param_nodes(W)
    graph.set_outputs(OUT)
    return graph


training_inputs = [[1.0], [2.0], [3.0]]
training_outputs = [3.0, 6.0, 9.0]
