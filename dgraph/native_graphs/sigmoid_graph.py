from dgraph import graph as dgraph_graph
from dgraph import nodes


# A single sigmoid applied directly to an input
def build():
    graph = dgraph_graph.Graph("sigmoid")

    X = nodes.InputNode(name="x")
    S = nodes.SigmoidNode(X, name="sigmoid")

    graph.add_input_nodes(X)
    graph.set_outputs(S)
    return graph
